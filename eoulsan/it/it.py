import argparse
import sys
from pathlib import Path

from eoulsan.tools.common import *
from eoulsan.it.config import ITError, TESTS_DIRECTORY_KEY, init_constants, load_global_config
from eoulsan.it.suite import ITSuite, collect_tests


class It_suite(Step):
    """
    run the integration tests
    """
    def __init__(self, args):
        Step.__init__(self, args, display_title='Integration tests')
        self.application_path = get_config_value(args, self.config, 'application_path') or str(Path.cwd())
        self.constants = init_constants(self.application_path)

        it_conf = get_config_value(args, self.config, 'it_conf')
        if it_conf:
            self.global_conf = load_global_config(it_conf, self.constants)
        elif isinstance(self.config.get('it'), dict):
            self.global_conf = load_global_config(self.config['it'], self.constants)
        else:
            raise EoulsanError("No integration tests configuration set, use --it_conf or the it section of "
                               "config.yaml.")

        self.test_list = get_config_value(args, self.config, 'test_list')
        self.test = get_config_value(args, self.config, 'test')
        self.generate_all = bool(get_config_value(args, self.config, 'generate_all', False))
        self.generate_new = bool(get_config_value(args, self.config, 'generate_new', False))
        self.outdir = get_config_value(args, self.config, 'outdir')
        self.threads = int(get_config_value(args, self.config, 'thread', 1))

    @add_log
    def run(self):
        tests_dir = self.global_conf.get(TESTS_DIRECTORY_KEY)
        if not tests_dir:
            raise ITError(f"No {TESTS_DIRECTORY_KEY} set in the integration tests configuration")
        tests = collect_tests(tests_dir, self.test_list, self.test)
        suite = ITSuite(tests, self.global_conf, self.constants, self.application_path, self.generate_all,
                        self.generate_new, self.outdir, self.threads)
        self.run.logger.info(f'{len(suite.tests)} integration test(s) to run, output in '
                             f'{suite.output_tests_directory}')
        success = suite.run()
        self.run.logger.info(f'{suite.success_count} succeeded, {suite.fail_count} failed, '
                             f'{suite.skip_count} skipped')
        if not success:
            raise ITError('\n'.join(suite.reports))
        return suite


@add_log
def it(args):
    step = It_suite(args)
    return step.run()


def get_opts_it(parser, sub_program=True):
    parser.add_argument('--it_conf', help='Integration tests configuration file, key=value or YAML.')
    parser.add_argument('--application_path', help='Path of the application to test.')
    parser.add_argument('--test_list', help='File with the names of the tests to run, one per line.')
    parser.add_argument('--test', help='Name of the only test to run.')
    parser.add_argument('--generate_all', help='Generate all the expected data directories.',
                        action='store_true', default=None)
    parser.add_argument('--generate_new', help='Generate the missing expected data directories.',
                        action='store_true', default=None)
    parser.add_argument('--outdir', help='Output directory of the tests, replace output.analysis.directory.')
    parser.add_argument('--thread', help='Number of tests run at the same time.', type=int)
    if sub_program:
        parser = s_common(parser)
    return parser


def main():
    parser = argparse.ArgumentParser(description='Eoulsan integration tests', formatter_class=ArgFormatter)
    parser = get_opts_it(parser)
    if len(sys.argv) <= 1:
        parser.print_help()
        parser.exit()
    args = parser.parse_args()
    it(args)


if __name__ == '__main__':
    main()
