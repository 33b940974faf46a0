import os
import sys
import time
import logging
import multiprocessing
from datetime import datetime
from pathlib import Path

from tqdm import tqdm

from eoulsan.it.config import *
from eoulsan.it.integration import IT
from eoulsan.it.result import to_time_human_readable

logger = logging.getLogger('eoulsan.it')

RUNNING_LINK_NAME = 'running'
SUCCEEDED_LINK_NAME = 'succeeded'
FAILED_LINK_NAME = 'failed'
LATEST_LINK_NAME = 'latest'


def read_test_list_file(path):
    with open(path) as fh:
        return [line.strip() for line in fh if line.strip() and not line.strip().startswith('#')]


def collect_tests(tests_dir, test_list_file=None, test_name=None):
    """
    directories of the tests to run, from the list file, the selected test or all the directories
    """
    tests_dir = Path(tests_dir)
    if test_list_file is not None:
        names = read_test_list_file(test_list_file)
    elif test_name is not None:
        names = [test_name]
    else:
        names = [p.name for p in sorted(tests_dir.iterdir()) if p.is_dir()] if tests_dir.is_dir() else []

    if not names:
        raise ITError(f"None test directory found in {tests_dir.absolute()}")

    tests = {}
    for name in names:
        test_dir = tests_dir/name
        if (test_dir/TEST_CONFIGURATION_FILENAME).is_file():
            tests[name] = test_dir
    return tests


def create_link(link_path, target):
    try:
        if link_path.is_symlink():
            link_path.unlink()
        os.symlink(os.path.relpath(target, link_path.parent), link_path)
    except OSError:
        logger.warning('Unable to create %s directory link: %s', link_path.name, link_path)


def run_test(params):
    """
    launch one test, the summary of its result is returned to the suite
    """
    try:
        test = IT(*params)
    except Exception as e:
        logger.warning('%s: FAIL, invalid test: %s', params[0], e)
        return params[0], False, False, f'Fail test: {params[0]}\n\tinvalid test: {type(e).__name__}: {e}'
    result = test.launch_test()
    return test.test_name, result.nothing_to_do, result.is_success, result.create_short_report()


class ITSuite():
    """
    run the integration tests of a tests directory
    """
    def __init__(self, tests, global_conf, constants, application_path, generate_all=False, generate_new=False,
                 output_dir=None, threads=1):
        self.global_conf = global_conf
        self.constants = constants
        self.application_path = Path(application_path)
        self.generate_all = generate_all or to_bool(global_conf.get(GENERATE_ALL_EXPECTED_DATA_KEY, 'false'))
        self.generate_new = generate_new or to_bool(global_conf.get(GENERATE_NEW_EXPECTED_DATA_KEY, 'false'))
        self.threads = max(1, int(threads))
        if self.generate_all:
            self.action_type = 'Generate all expected test data directories'
        elif self.generate_new:
            self.action_type = 'Generate new expected test data directories'
        else:
            self.action_type = 'Launch tests'

        if TESTS_DIRECTORY_KEY not in global_conf:
            raise ITError(f"No {TESTS_DIRECTORY_KEY} set in the integration tests configuration")
        self.tests_data_directory = Path(global_conf[TESTS_DIRECTORY_KEY])

        self.version_application = retrieve_version_application(
            global_conf.get(COMMAND_TO_GET_APPLICATION_VERSION_KEY), self.application_path)
        date = datetime.now().strftime('%Y%m%d_%H%M%S')
        output_root = output_dir or global_conf.get(OUTPUT_ANALYSIS_DIRECTORY_KEY)
        if not output_root:
            raise ITError(f"No {OUTPUT_ANALYSIS_DIRECTORY_KEY} set in the integration tests configuration")
        self.output_tests_directory = Path(output_root)/f'{self.version_application}_{date}'
        log_dir = Path(global_conf.get(LOG_DIRECTORY_KEY) or output_root)
        self.log_file = log_dir/f'{self.version_application}_{date}.log'

        self.tests = {name: path for name, path in tests.items()
                      if (Path(path)/TEST_CONFIGURATION_FILENAME).exists()}
        if not self.tests:
            raise ITError(f"None test valide in directory {self.tests_data_directory.absolute()}")

        self.success_count = 0
        self.fail_count = 0
        self.skip_count = 0
        self.reports = []

    def init_logger(self):
        self.log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(self.log_file)
        handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        logger.addHandler(handler)
        logger.setLevel(logging.DEBUG)
        return handler

    def init(self):
        if not self.tests_data_directory.is_dir():
            raise ITError(f"tests data directory not found: {self.tests_data_directory}")
        if not self.output_tests_directory.parent.is_dir():
            self.output_tests_directory.parent.mkdir(parents=True)
        self.output_tests_directory.mkdir()
        logger.info('Tests data directory: %s', self.tests_data_directory.absolute())
        logger.info('Output tests directory: %s', self.output_tests_directory.absolute())
        logger.info('Action %s', self.action_type)
        if self.log_file.exists():
            os.symlink(self.log_file.absolute(), self.output_tests_directory/self.log_file.name)

    def link(self, name):
        create_link(self.output_tests_directory.parent/name, self.output_tests_directory)

    def params(self):
        return [(name, self.global_conf, self.constants, self.application_path, self.tests_data_directory,
                 self.output_tests_directory, self.generate_all, self.generate_new) for name in sorted(self.tests)]

    def run(self):
        handler = self.init_logger()
        start = time.time()
        try:
            self.init()
            self.link(RUNNING_LINK_NAME)

            param_list = self.params()
            if self.threads > 1:
                with multiprocessing.Pool(min(self.threads, len(param_list))) as p:
                    results = list(tqdm(p.imap(run_test, param_list), total=len(param_list), unit_scale=True,
                                        ncols=70, file=sys.stdout, desc='Integration tests '))
            else:
                results = [run_test(params) for params in tqdm(param_list, unit_scale=True, ncols=70,
                                                               file=sys.stdout, desc='Integration tests ')]

            for name, nothing_to_do, success, report in results:
                if nothing_to_do:
                    self.skip_count += 1
                elif success:
                    self.success_count += 1
                else:
                    self.fail_count += 1
                    self.reports.append(report)

            running = self.output_tests_directory.parent/RUNNING_LINK_NAME
            if running.is_symlink():
                running.unlink()
            self.link(LATEST_LINK_NAME)
            self.link(SUCCEEDED_LINK_NAME if self.fail_count == 0 else FAILED_LINK_NAME)

            logger.info('End of execution for %d integration tests in %s', len(param_list),
                        to_time_human_readable(time.time() - start))
            logger.info('RUN : %d succeeded, %d failed, %d skipped. %s', self.success_count, self.fail_count,
                        self.skip_count, 'All tests are OK.' if self.fail_count == 0 else '')
        finally:
            logger.removeHandler(handler)
            handler.close()

        return self.fail_count == 0
