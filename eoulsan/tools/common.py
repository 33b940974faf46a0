import logging
import time
import re
from datetime import timedelta
from functools import wraps
import yaml
from pathlib import Path
import os
import importlib
import argparse

from eoulsan.__init__ import ROOT_PATH


CU_PATH = Path(__file__).absolute()

COMPRESSION_EXTENSIONS = ['.gz', '.bz2', '.xz', '.zst']


class EoulsanError(Exception):
    """
    base error of the toolkit
    """
    pass


class ArgFormatter(argparse.ArgumentDefaultsHelpFormatter, argparse.RawTextHelpFormatter):
    pass


def add_log(func):
    '''
    logging start and done.
    '''
    logFormatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    module = func.__module__
    name = func.__name__
    logger_name = f'{module}.{name}'
    logger = logging.getLogger(logger_name)
    logger.setLevel(logging.INFO)

    consoleHandler = logging.StreamHandler()
    consoleHandler.setFormatter(logFormatter)
    logger.addHandler(consoleHandler)

    @wraps(func)
    def wrapper(*args, **kwargs):
        if args and hasattr(args[0], 'debug') and args[0].debug:
            logger.setLevel(10)  # debug

        logger.info('start...')
        start = time.time()
        result = func(*args, **kwargs)
        end = time.time()
        used = timedelta(seconds=end - start)
        logger.info('done. time used: %s', used)
        return result

    wrapper.logger = logger
    return wrapper


def s_common(parser):
    """subparser common arguments
    """
    parser.add_argument('--config_path', help='The position where the config.yaml is located ')
    parser.add_argument('--debug', help='Print debug messages.', action='store_true')
    return parser


def parse_config(config_path):
    """
    Load config.yaml from config_path. An empty dict is returned when no config path is given.
    """
    if not config_path:
        return {}
    configfile = Path(config_path)/"config.yaml"
    with open(configfile, "r") as arg_fh:
        config = yaml.load(arg_fh, Loader=yaml.FullLoader)
    return config or {}


def get_config_value(args, config, name, default=None):
    """
    command line value first, then config.yaml, then default
    """
    value = getattr(args, name, None)
    if value is not None:
        return value
    return config.get(name, default)


def find_step_module(step):
    file_path_dict = {
        'step': f'{ROOT_PATH}/{step}/{step}.py',
    }
    if os.path.exists(file_path_dict['step']):
        step_module = importlib.import_module(f"eoulsan.{step}.{step}")
    else:
        raise ModuleNotFoundError(f"No module found for {step}.{step}")

    return step_module


class Step:
    """
    Step class
    """

    def __init__(self, args, display_title=None):
        self.args = args
        self.display_title = display_title
        self.config = parse_config(getattr(args, 'config_path', None))


def to_valid_name(name):
    """
    Keep only ascii letters and digits.
    """
    if name is None:
        return None
    return re.sub(r'[^A-Za-z0-9]', '', name)


def is_valid_name(name):
    if name is None:
        return False
    name = name.strip()
    return name != '' and to_valid_name(name) == name


def get_compression_extension(filename):
    for ext in COMPRESSION_EXTENSIONS:
        if str(filename).endswith(ext):
            return ext
    return ''


def remove_compression_extension(filename):
    ext = get_compression_extension(filename)
    filename = str(filename)
    return filename[:len(filename) - len(ext)] if ext else filename


def get_extension(filename):
    """
    extension without the compression extension, in lower case and without the dot
    """
    base = os.path.basename(remove_compression_extension(filename))
    if '.' not in base:
        return ''
    return base.rsplit('.', 1)[1].lower()
