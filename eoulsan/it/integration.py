import os
import time
import shutil
import logging
from pathlib import Path

from eoulsan.it.config import *
from eoulsan.it.executor import ITCommandExecutor
from eoulsan.it.output import ITOutput, extract_pattern, excluded_patterns
from eoulsan.it.result import ITResult

logger = logging.getLogger(__name__)

TEST_SOURCE_LINK_NAME = 'test-source'
ENV_FILENAME = 'ENV'


class IT():
    """
    an integration test: run the scripts of the test in its output directory, then generate the expected
    data or compare the output with them
    """
    def __init__(self, test_name, global_conf, constants, application_path, tests_data_dir, output_tests_dir,
                 generate_all=False, generate_new=False):
        self.test_name = test_name
        self.application_path = Path(application_path)
        self.test_data_directory = Path(tests_data_dir)/test_name
        self.output_test_directory = Path(output_tests_dir)/test_name
        for path, desc in ((tests_data_dir, 'tests data directory'), (output_tests_dir, 'output tests directory'),
                           (application_path, 'application path')):
            if not Path(path).is_dir():
                raise ITError(f"{desc} not found: {path}")

        self.test_conf = load_test_config(self.test_data_directory/TEST_CONFIGURATION_FILENAME, global_conf,
                                          constants)
        self.environment = self.extract_environment_variables()
        self.result = ITResult(self)
        self.output = None

        self.remove_file_required = to_bool(self.test_conf.get(SUCCESS_IT_DELETE_FILE_KEY, 'false'))
        self.generate_all = generate_all
        self.generate_new = generate_new
        self.generate_expected_data = generate_all or generate_new
        self.manual_generation = to_bool(self.test_conf.get(MANUAL_GENERATION_EXPECTED_DATA_KEY, 'false'))
        self.expected_test_directory = self.retrieve_expected_directory()

        self.files_to_compare_patterns = extract_pattern(self.test_conf.get(FILES_TO_COMPARE_KEY))
        self.excluded_files_patterns = excluded_patterns(self.test_conf.get(EXCLUDED_FILES_TO_COMPARE_KEY))
        self.files_to_check_length_patterns = extract_pattern(self.test_conf.get(FILES_TO_CHECK_LENGTH_KEY))
        self.files_to_check_existence_patterns = extract_pattern(self.test_conf.get(FILES_TO_CHECK_EXISTENCE_KEY))
        self.files_to_check_absence_patterns = extract_pattern(self.test_conf.get(FILES_TO_CHECK_ABSENCE_KEY))
        self.files_to_remove_patterns = extract_pattern(self.test_conf.get(FILES_TO_REMOVE_KEY))

        description = self.test_conf.get(DESCRIPTION_KEY) or self.test_name
        action = self.action_type()
        self.description = f'{description}, action: {action}'

    def action_type(self):
        if not self.generate_expected_data:
            return 'Launch tests'
        if self.generate_all:
            return 'Generate all expected test data directories'
        return 'Generate new expected test data directories'

    @property
    def duration_max(self):
        value = self.test_conf.get(RUNTIME_TEST_MAXIMUM_KEY)
        try:
            return int(value)
        except (TypeError, ValueError):
            logger.error('Duration set in configuration invalid %s. Use default value %s', value,
                         RUNTIME_TEST_MAXIMUM_DEFAULT)
            return RUNTIME_TEST_MAXIMUM_DEFAULT

    def extract_environment_variables(self):
        env = dict(os.environ)
        for key, value in self.test_conf.items():
            if key.startswith(PREFIX_ENV_VAR):
                env[key[len(PREFIX_ENV_VAR):]] = value
        return env

    def retrieve_expected_directory(self):
        expected = sorted(p for p in self.test_data_directory.iterdir() if p.name.startswith('expected')) \
            if self.test_data_directory.is_dir() else []

        if not expected:
            if not self.generate_expected_data:
                raise ITError(f"{self.test_name}: no expected directory found to launch test in "
                              f"{self.test_data_directory.absolute()}")
            version = 'UNKNOWN' if self.manual_generation else retrieve_version_application(
                self.test_conf.get(COMMAND_TO_GET_APPLICATION_VERSION_KEY), self.application_path)
            return self.test_data_directory/f'expected_{version}'

        if len(expected) > 1:
            raise ITError(f"{self.test_name}: more one expected directory found in "
                          f"{self.test_data_directory.absolute()}")
        if not expected[0].is_dir():
            raise ITError(f"{self.test_name}: no expected directory found in {self.test_data_directory.absolute()}")
        return expected[0]

    def is_data_needed_to_be_generated(self):
        if not self.generate_expected_data:
            return True
        if self.manual_generation:
            return not self.expected_test_directory.exists()
        if self.generate_all:
            return True
        return self.generate_new and not self.expected_test_directory.exists()

    def build_output_directory(self):
        if self.output_test_directory.exists():
            raise ITError(f"Test output directory already exists {self.output_test_directory.absolute()}")
        (self.output_test_directory/'tmp').mkdir(parents=True)

        if not self.test_data_directory.is_dir():
            raise ITError(f"input test directory not found: {self.test_data_directory}")
        test_source = self.output_test_directory/TEST_SOURCE_LINK_NAME
        os.symlink(self.test_data_directory.absolute(), test_source)

        # relative links through test-source
        for f in sorted(self.test_data_directory.iterdir()):
            if f.is_file():
                os.symlink(Path(TEST_SOURCE_LINK_NAME)/f.name, self.output_test_directory/f.name)

    def save_environment_variables(self):
        if not self.environment:
            return
        env = '\n'.join(f'{k}={v}' for k, v in self.environment.items())
        (self.output_test_directory/ENV_FILENAME).write_text(env)

    def execute_command(self, executor, key, suffix, desc, is_application=False):
        command_result = executor.execute_command(key, suffix, desc, is_application)
        if command_result is None:
            return
        self.result.add_command_result(command_result)
        if command_result.caught_exception:
            raise ITError(command_result.exception_message)

    def launch_scripts(self):
        if not self.output_test_directory.is_dir():
            raise ITError(f"output test directory not found: {self.output_test_directory}")
        self.save_environment_variables()
        executor = ITCommandExecutor(self.test_conf, self.output_test_directory, self.environment,
                                     self.duration_max)

        self.execute_command(executor, PRE_GLOBAL_SCRIPT_KEY, 'PRE_SCRIPT_GLOBAL', 'global prescript')
        self.execute_command(executor, PRE_TEST_SCRIPT_KEY, 'PRE_SCRIPT', 'test prescript')
        if self.generate_expected_data and self.manual_generation:
            self.execute_command(executor, COMMAND_TO_GENERATE_MANUALLY_KEY, '', 'manual script to generate data',
                                 True)
        else:
            self.execute_command(executor, COMMAND_TO_LAUNCH_APPLICATION_KEY, '', 'application', True)
        self.execute_command(executor, POST_TEST_SCRIPT_KEY, 'POST_SCRIPT', 'test postscript')
        self.execute_command(executor, POST_GLOBAL_SCRIPT_KEY, 'POST_SCRIPT_GLOBAL', 'global postscript')

    def new_output(self, directory):
        return ITOutput(directory, self.files_to_compare_patterns, self.excluded_files_patterns,
                        self.files_to_check_length_patterns, self.files_to_check_existence_patterns,
                        self.files_to_check_absence_patterns)

    def create_expected_directory(self):
        if not self.generate_expected_data:
            return
        if (self.manual_generation or self.generate_new) and self.expected_test_directory.exists():
            return
        if self.generate_all and self.expected_test_directory.exists():
            shutil.rmtree(self.expected_test_directory)
        self.expected_test_directory.mkdir()

    def launch_test(self):
        """
        errors of the test are stored in the result, which is returned
        """
        start = time.time()
        logger.info('Start test %s', self.test_name)
        logger.info('Test directory %s', self.test_data_directory.absolute())
        logger.info('Output directory %s', self.output_test_directory.absolute())

        try:
            if not self.is_data_needed_to_be_generated():
                self.result.nothing_to_do = True
                return self.result

            self.build_output_directory()
            self.launch_scripts()
            self.output = self.new_output(self.output_test_directory)

            if self.generate_expected_data:
                self.result.generated_data = True
                self.create_expected_directory()
                self.result.copied_files = self.output.copy_files(self.expected_test_directory)
            else:
                results = self.output.compare_to(self.new_output(self.expected_test_directory))
                self.result.add_comparisons_results(results)
                self.result.check_needed_throw_exception()

        except Exception as e:
            if self.result.is_success:
                self.result.set_exception(e)

        finally:
            if self.output is not None:
                self.result.add_comments(self.output.delete_file_matching_on_pattern(
                    self.files_to_remove_patterns, self.result.is_success, self.remove_file_required))
            logger.info('End of test %s', self.test_name)
            self.result.create_report_file(time.time() - start)

        return self.result

    def __repr__(self):
        return f'{self.description}, files from pattern(s) {self.files_to_compare_patterns}'
