import os
import subprocess
from pathlib import Path

import yaml

from eoulsan.tools.common import EoulsanError


class ITError(EoulsanError):
    pass


TESTS_DIRECTORY_KEY = 'tests.directory'
OUTPUT_ANALYSIS_DIRECTORY_KEY = 'output.analysis.directory'
LOG_DIRECTORY_KEY = 'log.directory'
PRE_TEST_SCRIPT_KEY = 'pre.test.script'
POST_TEST_SCRIPT_KEY = 'post.test.script'
PRE_GLOBAL_SCRIPT_KEY = 'pre.global.script'
POST_GLOBAL_SCRIPT_KEY = 'post.global.script'
GENERATE_ALL_EXPECTED_DATA_KEY = 'generate.all.expected.data'
GENERATE_NEW_EXPECTED_DATA_KEY = 'generate.new.expected.data'
DESCRIPTION_KEY = 'description'
COMMAND_TO_LAUNCH_APPLICATION_KEY = 'command.to.launch.application'
COMMAND_TO_GENERATE_MANUALLY_KEY = 'command.to.generate.manually'
COMMAND_TO_GET_APPLICATION_VERSION_KEY = 'command.to.get.application.version'
INCLUDE_KEY = 'include'
SUCCESS_IT_DELETE_FILE_KEY = 'success.it.delete.file'
FILES_TO_COMPARE_KEY = 'files.to.compare'
EXCLUDED_FILES_TO_COMPARE_KEY = 'excluded.files.to.compare'
FILES_TO_CHECK_LENGTH_KEY = 'files.to.check.length'
FILES_TO_CHECK_EXISTENCE_KEY = 'files.to.check.existences'
FILES_TO_CHECK_ABSENCE_KEY = 'files.to.check.absence'
FILES_TO_REMOVE_KEY = 'files.to.remove'
MANUAL_GENERATION_EXPECTED_DATA_KEY = 'manual.generation.expected.data'
RUNTIME_TEST_MAXIMUM_KEY = 'runtime.test.maximum'
APPLICATION_PATH_KEY = 'application.path'
PREFIX_ENV_VAR = 'env.var.'

TEST_CONFIGURATION_FILENAME = 'test.conf'
RUNTIME_TEST_MAXIMUM_DEFAULT = 1
SEPARATOR = ' '

# values of these keys in test.conf are appended to the global values
PATTERN_KEYS = [
    EXCLUDED_FILES_TO_COMPARE_KEY,
    FILES_TO_COMPARE_KEY,
    FILES_TO_REMOVE_KEY,
    FILES_TO_CHECK_ABSENCE_KEY,
    FILES_TO_CHECK_EXISTENCE_KEY,
    FILES_TO_CHECK_LENGTH_KEY,
]


def init_constants(application_path=None):
    constants = dict(os.environ)
    if application_path is not None:
        constants[APPLICATION_PATH_KEY] = str(Path(application_path).absolute())
    return constants


def to_bool(value):
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == 'true'


def _to_string(value):
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)


def _sub_str(s, begin, end_char):
    end = s.find(end_char, begin)
    if end == -1:
        raise ITError(f"Unexpected end of expression in \"{s}\"")
    return s[begin:end]


def exec_to_string(command):
    try:
        return subprocess.run(command, shell=True, stdout=subprocess.PIPE, check=True).stdout.decode()
    except (OSError, subprocess.CalledProcessError) as e:
        raise ITError(f"Error while evaluating expression \"{command}\": {e}")


def retrieve_version_application(command, application_path=None):
    """
    output of the command, UNKNOWN if the command is not set or fails
    """
    if command is None or not command.strip():
        return 'UNKNOWN'
    try:
        out = subprocess.run(command, shell=True, cwd=application_path, stdout=subprocess.PIPE,
                             stderr=subprocess.DEVNULL, check=True).stdout.decode()
    except (OSError, subprocess.CalledProcessError):
        return 'UNKNOWN'
    return out.strip() or 'UNKNOWN'


def evaluate_expressions(s, constants, allow_exec=True):
    """
    Replace ${name} by the value of the constant and `command` by the output of the command.
    """
    if s is None:
        return None
    result = []
    i = 0
    while i < len(s):
        c = s[i]
        if c == '$' and i + 1 < len(s) and s[i + 1] == '{':
            expr = _sub_str(s, i + 2, '}')
            name = expr.strip()
            if name in constants:
                result.append(constants[name])
            i += len(expr) + 3
            continue
        if c == '`' and allow_exec:
            expr = _sub_str(s, i + 1, '`')
            output = exec_to_string(evaluate_expressions(expr, constants, False))
            result.append(output[:-1] if output.endswith('\n') else output)
            i += len(expr) + 2
            continue
        result.append(c)
        i += 1
    return ''.join(result)


def evaluate_properties(raw, constants):
    """
    The env.var.* values are evaluated first and become constants.
    """
    for key, value in raw.items():
        if key.startswith(PREFIX_ENV_VAR):
            constants[key[len(PREFIX_ENV_VAR):]] = evaluate_expressions(value, constants)
    return {key: evaluate_expressions(value, constants) for key, value in raw.items()}


def read_properties(path):
    """
    key=value file, lines starting with # and lines without = are skipped
    """
    result = {}
    with open(path) as fh:
        for line in fh:
            line = line.rstrip('\r\n')
            if line.startswith('#'):
                continue
            pos = line.find('=')
            if pos == -1:
                continue
            result[line[:pos].strip()] = line[pos + 1:].strip()
    return result


def read_config_file(path):
    path = Path(path)
    if not path.is_file():
        raise ITError(f"Configuration file not found: {path}")
    if path.suffix in ('.yaml', '.yml'):
        with open(path) as fh:
            config = yaml.load(fh, Loader=yaml.FullLoader) or {}
        config = config.get('it', config)
        return {str(k): _to_string(v) for k, v in config.items() if v is not None}
    return read_properties(path)


def add_default_properties(conf):
    conf.setdefault(SUCCESS_IT_DELETE_FILE_KEY, 'false')
    conf.setdefault(RUNTIME_TEST_MAXIMUM_KEY, str(RUNTIME_TEST_MAXIMUM_DEFAULT))
    return conf


def load_global_config(source, constants):
    """
    source is a configuration file or a dict of the it section of config.yaml
    """
    if isinstance(source, dict):
        raw = {str(k): _to_string(v) for k, v in source.items() if v is not None}
    else:
        raw = read_config_file(source)
    conf = evaluate_properties(raw, constants)

    include = conf.get(INCLUDE_KEY)
    if include:
        included = evaluate_properties(read_config_file(include), constants)
        for key, value in included.items():
            conf.setdefault(key, value)

    return add_default_properties(conf)


def load_test_config(test_conf_file, global_conf, constants):
    test_conf_file = Path(test_conf_file)
    if not test_conf_file.exists():
        raise ITError(f"test configuration file not found: {test_conf_file}")

    conf = dict(global_conf)
    for key, value in read_properties(test_conf_file).items():
        value = evaluate_expressions(value, constants)
        if key in PATTERN_KEYS and key in conf:
            value = conf[key] + SEPARATOR + value
        conf[key] = value
    return conf
