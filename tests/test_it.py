import argparse
import gzip

import pytest

from eoulsan.it import config
from eoulsan.it.config import ITError, evaluate_expressions, load_global_config, load_test_config
from eoulsan.it.comparators import (BinaryComparator, FastqComparator, FilesComparator, LogComparator,
                                    SAMComparator, TextComparator, get_comparator)
from eoulsan.it.executor import ITCommandExecutor
from eoulsan.it.output import ITOutput, StatusComparison, excluded_patterns, extract_pattern, match_pattern
from eoulsan.it.integration import IT
from eoulsan.it.suite import ITSuite, collect_tests
from eoulsan.it import it as it_step
from eoulsan.tools.common import EoulsanError


def write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


class TestConfig:
    def test_constant_expression(self):
        assert evaluate_expressions('${ROOT}/data', {'ROOT': '/r'}) == '/r/data'
        assert evaluate_expressions('${UNSET}/data', {}) == '/data'

    def test_command_expression(self):
        assert evaluate_expressions('v`echo 12`', {}) == 'v12'
        assert evaluate_expressions('`echo ${X}`', {'X': 'a'}) == 'a'

    def test_unterminated_expression(self):
        with pytest.raises(ITError, match='Unexpected end of expression'):
            evaluate_expressions('${ROOT', {})

    def test_failing_command_expression(self):
        with pytest.raises(ITError):
            evaluate_expressions('`exit 1`', {})

    def test_global_config_with_include(self, tmp_path):
        included = write(tmp_path/'included.conf', 'log.directory=/other\nruntime.test.maximum=5\n')
        main = write(tmp_path/'it.conf', '# integration tests\n'
                                         'tests.directory=${ROOT}/tests\n'
                                         'env.var.DATA=${ROOT}/data\n'
                                         'log.directory=${DATA}/logs\n'
                                         f'include={included}\n')
        constants = {'ROOT': '/r'}

        conf = load_global_config(main, constants)

        assert conf['tests.directory'] == '/r/tests'
        assert conf['log.directory'] == '/r/data/logs'
        assert conf['runtime.test.maximum'] == '5'
        assert conf['success.it.delete.file'] == 'false'
        assert constants['DATA'] == '/r/data'

    def test_yaml_config(self, tmp_path):
        path = write(tmp_path/'it.yaml', 'it:\n'
                                         '  tests.directory: /t\n'
                                         '  runtime.test.maximum: 2\n'
                                         '  success.it.delete.file: true\n')
        conf = load_global_config(path, {})
        assert conf == {'tests.directory': '/t', 'runtime.test.maximum': '2', 'success.it.delete.file': 'true'}

    def test_dict_config(self):
        conf = load_global_config({'tests.directory': '/t', 'generate.new.expected.data': False}, {})
        assert conf['generate.new.expected.data'] == 'false'
        assert conf['runtime.test.maximum'] == '1'

    def test_missing_config_file(self, tmp_path):
        with pytest.raises(ITError):
            load_global_config(tmp_path/'missing.conf', {})

    def test_test_config_appends_patterns(self, tmp_path):
        test_conf = write(tmp_path/'test.conf', 'files.to.compare=*.tsv\ndescription=local ${X}\n')
        global_conf = {'files.to.compare': '*.txt', 'description': 'global'}

        conf = load_test_config(test_conf, global_conf, {'X': 'x'})

        assert conf['files.to.compare'] == '*.txt *.tsv'
        assert conf['description'] == 'local x'
        assert global_conf['files.to.compare'] == '*.txt'

    def test_missing_test_config(self, tmp_path):
        with pytest.raises(ITError):
            load_test_config(tmp_path/'test.conf', {}, {})

    def test_application_version(self, tmp_path):
        assert config.retrieve_version_application('echo 2.5 ', tmp_path) == '2.5'
        assert config.retrieve_version_application('false', tmp_path) == 'UNKNOWN'
        assert config.retrieve_version_application(None) == 'UNKNOWN'


class TestComparators:
    def test_get_comparator(self):
        assert isinstance(get_comparator('reads.fq.gz'), FastqComparator)
        assert isinstance(get_comparator('a/b/result.TSV'), TextComparator)
        assert isinstance(get_comparator('mapper.err'), LogComparator)
        assert isinstance(get_comparator('mapped.sam'), SAMComparator)
        assert isinstance(get_comparator('index.zip'), BinaryComparator)

    def test_text_lines_in_other_order(self, tmp_path):
        expected = write(tmp_path/'e.txt', 'a\nb\nc\n')
        tested = write(tmp_path/'t.txt', 'c\na\nb\n')
        assert TextComparator().compare_files(expected, tested)

    def test_text_difference(self, tmp_path):
        expected = write(tmp_path/'e.txt', 'a\nb\nc\n')
        tested = write(tmp_path/'t.txt', 'a\nx\nc\n')

        comparator = FilesComparator(expected, tested)

        assert not comparator.compare()
        assert comparator.detail_comparison() == 'fail at comparison #2: element not found in expected file: x'

    def test_missing_lines(self, tmp_path):
        expected = write(tmp_path/'e.txt', 'a\nb\n')
        tested = write(tmp_path/'t.txt', 'a\n')
        comparator = TextComparator()
        assert not comparator.compare_files(expected, tested)
        assert comparator.cause_fail_comparison.startswith('1 element(s)')

    def test_log_skips_dates(self, tmp_path):
        expected = write(tmp_path/'e.log', '2020-01-01 start\nmapped 10 reads\nduration: 3s\n')
        tested = write(tmp_path/'t.log', '2021-05-04 start\nmapped 10 reads\nduration: 8s\n')
        assert LogComparator().compare_files(expected, tested)

    def test_log_keeps_lines_mentioning_time(self, tmp_path):
        expected = write(tmp_path/'e.log', 'Elapsed time: 3s\ntimeout of the runtime check\n')
        tested = write(tmp_path/'t.log', 'Elapsed time: 9s\nno timeout\n')
        assert not LogComparator().compare_files(expected, tested)

    def test_sam_skips_program_header(self, tmp_path):
        expected = write(tmp_path/'e.sam', '@HD\tVN:1.0\n@PG\tID:bwa\tCL:bwa mem a\nr1\t4\t*\n')
        tested = write(tmp_path/'t.sam', '@HD\tVN:1.0\n@PG\tID:bwa\tCL:bwa mem b\nr1\t4\t*\n')
        assert SAMComparator().compare_files(expected, tested)

    def test_fastq(self, tmp_path):
        expected = tmp_path/'e.fq.gz'
        with gzip.open(expected, 'wt') as fh:
            fh.write('@r1\nACGT\n+\nIIII\n@r2\nGGGG\n+\n####\n')
        tested = write(tmp_path/'t.fq', '@r2\nGGGG\n+\n####\n@r1\nACGT\n+\nIIII\n')
        other = write(tmp_path/'o.fq', '@r2\nGGGG\n+\n####\n@r1\nACGT\n+\nIIIH\n')

        assert FastqComparator().compare_files(expected, tested)
        assert not FastqComparator().compare_files(expected, other)

    def test_binary(self, tmp_path):
        expected = tmp_path/'e.bin'
        expected.write_bytes(b'\x00\x01')
        tested = tmp_path/'t.bin'
        tested.write_bytes(b'\x00\x02')
        assert not BinaryComparator().compare_files(expected, tested)
        assert BinaryComparator().compare_files(expected, expected)


class TestOutput:
    def test_match_pattern(self):
        assert match_pattern('a/b/c.txt', '**/c.txt')
        assert match_pattern('c.txt', '**/c.txt')
        assert match_pattern('a/c.txt', '*.txt')
        assert not match_pattern('a/c.txt', 'b/*.txt')

    def test_patterns(self):
        assert extract_pattern(None) == 'none'
        assert extract_pattern(' *.txt ') == '*.txt'
        assert excluded_patterns(None) == '**/test-source **/test.conf'
        assert excluded_patterns('*.bam') == 'test-source test.conf *.bam'

    def new_output(self, directory, compare='*.txt', length='*.dat', existence='*.log', absence='core*'):
        return ITOutput(directory, compare, excluded_patterns(None), length, existence, absence)

    def test_select_files(self, tmp_path):
        write(tmp_path/'a.txt', 'a\n')
        write(tmp_path/'sub'/'b.txt', 'b\n')
        write(tmp_path/'test.conf', 'x=1\n')
        write(tmp_path/'run.log', '')
        write(tmp_path/'x.dat', 'x')

        output = self.new_output(tmp_path, compare='*.txt *.conf')

        assert [f.name for f in output.files_to_compare_content] == ['a.txt', 'b.txt']
        assert [f.name for f in output.files_to_check_length] == ['x.dat']
        assert [f.name for f in output.files_to_check_existence] == ['run.log']

    def test_none_pattern_selects_nothing(self, tmp_path):
        write(tmp_path/'a.txt', 'a\n')
        assert ITOutput(tmp_path, 'none', 'none', 'none', 'none', 'none').files_to_compare == []
        assert len(ITOutput(tmp_path, None, 'none', 'none', 'none', 'none').files_to_compare) == 1

    def test_missing_directory(self, tmp_path):
        with pytest.raises(ITError):
            self.new_output(tmp_path/'missing')

    def test_compare_to(self, tmp_path):
        expected_dir = tmp_path/'expected'
        write(expected_dir/'a.txt', 'a\n')
        write(expected_dir/'b.txt', 'b\n')
        write(expected_dir/'big.dat', 'x' * 200)
        write(expected_dir/'run.log', 'started\n')
        tested_dir = tmp_path/'tested'
        write(tested_dir/'a.txt', 'a\n')
        write(tested_dir/'c.txt', 'c\n')
        write(tested_dir/'big.dat', 'x' * 201)
        write(tested_dir/'run.log', '')
        write(tested_dir/'core.1', '')

        results = self.new_output(tested_dir).compare_to(self.new_output(expected_dir))

        status = {r.filename: r.status for r in results}
        assert status == {
            'a.txt': StatusComparison.EQUALS,
            'b.txt': StatusComparison.MISSING,
            'big.dat': StatusComparison.EQUALS,
            'c.txt': StatusComparison.UNEXPECTED,
            'core.1': StatusComparison.UNEXPECTED,
            'run.log': StatusComparison.NOT_EQUALS,
        }
        assert [r.filename for r in results] == sorted(status)
        assert results[0].report() == '\tOK : a.txt'

    def test_length_difference(self, tmp_path):
        write(tmp_path/'expected'/'big.dat', 'x' * 200)
        write(tmp_path/'tested'/'big.dat', 'x' * 210)

        results = self.new_output(tmp_path/'tested').compare_to(self.new_output(tmp_path/'expected'))

        assert results[0].status is StatusComparison.NOT_EQUALS
        assert results[0].type == 'FAIL'

    def test_copy_files(self, tmp_path):
        write(tmp_path/'out'/'a.txt', 'a\n')
        destination = tmp_path/'expected'
        destination.mkdir()
        output = self.new_output(tmp_path/'out')

        assert output.copy_files(destination) == 1
        assert (destination/'a.txt').read_text() == 'a\n'
        with pytest.raises(ITError):
            output.copy_files(destination)

    def test_delete_files_after_success(self, tmp_path):
        write(tmp_path/'a.txt', 'a\n')
        tmp_file = write(tmp_path/'work.tmp', '')
        output = self.new_output(tmp_path)

        msg = output.delete_file_matching_on_pattern('*.tmp', True, True)

        assert not tmp_file.exists()
        assert 'All deletions successful.' in msg

    def test_keep_files_after_failure(self, tmp_path):
        tmp_file = write(tmp_path/'work.tmp', '')
        msg = self.new_output(tmp_path).delete_file_matching_on_pattern('*.tmp', False, True)
        assert tmp_file.exists()
        assert 'but test fail' in msg
        assert msg.endswith('Delete file matching on patterns no required.')


class TestCommandExecutor:
    def new_executor(self, tmp_path, conf, duration_max=1):
        return ITCommandExecutor(conf, tmp_path, None, duration_max)

    def test_no_command(self, tmp_path):
        assert self.new_executor(tmp_path, {}).execute_command('pre.test.script', 'PRE_SCRIPT', 'prescript') is None

    def test_script_success(self, tmp_path):
        executor = self.new_executor(tmp_path, {'pre.test.script': 'echo hi'})

        result = executor.execute_command('pre.test.script', 'PRE_SCRIPT', 'test prescript')

        assert result.exit_value == 0
        assert not result.caught_exception
        assert not (tmp_path/'STDOUT_PRE_SCRIPT').exists()

    def test_application(self, tmp_path):
        executor = self.new_executor(tmp_path, {'command.to.launch.application': 'echo mapped'})

        result = executor.execute_command('command.to.launch.application', '', 'application', True)

        assert result.exit_value == 0
        assert (tmp_path/'CMDLINE').read_text() == 'echo mapped'
        assert (tmp_path/'STDOUT').read_text() == 'mapped\n'

    def test_bad_exit_value(self, tmp_path):
        executor = self.new_executor(tmp_path, {'post.test.script': 'echo failed >&2; exit 3'})

        result = executor.execute_command('post.test.script', 'POST_SCRIPT', 'test postscript')

        assert result.exit_value == 3
        assert result.caught_exception
        assert 'bad exit value: 3' in result.exception_message
        assert 'failed' in result.stderr_message()
        assert 'Exit value: 3' in result.report()

    def test_timeout(self, tmp_path):
        executor = self.new_executor(tmp_path, {'command.to.launch.application': 'sleep 30'}, duration_max=0.02)

        result = executor.execute_command('command.to.launch.application', '', 'application', True)

        assert result.interrupted
        assert 'Kill process' in result.exception_message
        assert 'Interrupted after 0.02 minutes' in result.report()


@pytest.fixture
def it_env(tmp_path):
    tests_dir = tmp_path/'tests'
    write(tests_dir/'sort_test'/'test.conf', 'description=sort a file\n'
                                             'command.to.launch.application=sort input.txt > sorted.txt\n'
                                             'files.to.compare=sorted.txt\n')
    write(tests_dir/'sort_test'/'input.txt', 'b\na\n')
    application = tmp_path/'app'
    application.mkdir()
    global_conf = load_global_config({
        'tests.directory': str(tests_dir),
        'output.analysis.directory': str(tmp_path/'output'),
        'command.to.get.application.version': 'echo 1.0',
    }, {})
    return tests_dir, global_conf, application


class TestIntegrationTests:
    def new_suite(self, it_env, output_dir, generate_new=False):
        tests_dir, global_conf, application = it_env
        return ITSuite(collect_tests(tests_dir), global_conf, {}, application, generate_new=generate_new,
                       output_dir=str(output_dir))

    def test_collect_tests(self, tmp_path, it_env):
        tests_dir = it_env[0]
        (tests_dir/'not_a_test').mkdir()
        assert list(collect_tests(tests_dir)) == ['sort_test']
        test_list = write(tmp_path/'list.txt', '# tests\nsort_test\n')
        assert list(collect_tests(tests_dir, test_list_file=test_list)) == ['sort_test']
        with pytest.raises(ITError):
            collect_tests(tmp_path/'empty')

    def test_no_expected_data(self, tmp_path, it_env):
        tests_dir, global_conf, application = it_env
        out = tmp_path/'out'
        out.mkdir()
        with pytest.raises(ITError, match='no expected directory'):
            IT('sort_test', global_conf, {}, application, tests_dir, out)

    def test_generate_then_compare(self, tmp_path, it_env):
        tests_dir = it_env[0]

        generate = self.new_suite(it_env, tmp_path/'run1', generate_new=True)
        assert generate.run()
        expected = tests_dir/'sort_test'/'expected_1.0'
        assert (expected/'sorted.txt').read_text() == 'a\nb\n'
        assert (expected/'SUCCESS').exists()
        assert (tmp_path/'run1'/'succeeded').is_symlink()

        again = self.new_suite(it_env, tmp_path/'run2', generate_new=True)
        assert again.run()
        assert again.skip_count == 1

        compare = self.new_suite(it_env, tmp_path/'run3')
        assert compare.run()
        assert compare.success_count == 1
        output_dir = compare.output_tests_directory/'sort_test'
        assert (output_dir/'SUCCESS').exists()
        assert (output_dir/'test-source').is_symlink()
        assert (output_dir/'CMDLINE').read_text() == 'sort input.txt > sorted.txt'
        assert compare.log_file.exists()

        (expected/'sorted.txt').write_text('b\na\nc\n')
        failed = self.new_suite(it_env, tmp_path/'run4')
        assert not failed.run()
        assert failed.fail_count == 1
        assert 'Fail test: sort_test' in failed.reports[0]
        assert (failed.output_tests_directory/'sort_test'/'FAIL').exists()
        assert (tmp_path/'run4'/'failed').is_symlink()

    def test_failing_application(self, tmp_path, it_env):
        tests_dir, global_conf, application = it_env
        write(tests_dir/'sort_test'/'expected_1.0'/'sorted.txt', 'a\nb\n')
        write(tests_dir/'sort_test'/'test.conf', 'command.to.launch.application=exit 2\n'
                                                 'files.to.compare=sorted.txt\n')
        out = tmp_path/'out'
        out.mkdir()

        result = IT('sort_test', global_conf, {}, application, tests_dir, out).launch_test()

        assert not result.is_success
        assert 'bad exit value: 2' in result.exception_message
        report = (out/'sort_test'/'FAIL').read_text()
        assert report.startswith('FAIL: sort_test: test execution and output files comparison.')

    def test_comparator_error_fails_the_test(self, tmp_path, it_env):
        tests_dir = it_env[0]
        assert self.new_suite(it_env, tmp_path/'run1', generate_new=True).run()
        expected = tests_dir/'sort_test'/'expected_1.0'
        (expected/'sorted.txt').write_bytes(b'a\n\xe9\n')

        suite = self.new_suite(it_env, tmp_path/'run2')

        assert not suite.run()
        assert suite.fail_count == 1
        assert 'UnicodeDecodeError' in suite.reports[0]
        output_dir = suite.output_tests_directory/'sort_test'
        assert (output_dir/'FAIL').exists()
        assert not (output_dir/'SUCCESS').exists()
        assert not (tmp_path/'run2'/'running').is_symlink()
        assert (tmp_path/'run2'/'failed').is_symlink()

    def test_unset_compare_pattern_compares_nothing(self, tmp_path, it_env):
        tests_dir, global_conf, application = it_env
        write(tests_dir/'sort_test'/'test.conf', 'command.to.launch.application=sort input.txt > sorted.txt\n')
        expected = tests_dir/'sort_test'/'expected_1.0'
        write(expected/'sorted.txt', 'a\nb\n')
        out = tmp_path/'out'
        out.mkdir()

        test = IT('sort_test', global_conf, {}, application, tests_dir, out)

        assert test.files_to_compare_patterns == 'none'
        assert test.new_output(expected).files_to_compare == []

    def test_invalid_test_fails_the_suite(self, tmp_path, it_env):
        suite = self.new_suite(it_env, tmp_path/'run1')

        assert not suite.run()
        assert suite.fail_count == 1
        assert 'no expected directory' in suite.reports[0]


class TestItStep:
    def test_run_from_config_file(self, tmp_path, it_env):
        tests_dir = it_env[0]
        conf = write(tmp_path/'it.conf', f'tests.directory={tests_dir}\n'
                                         f'output.analysis.directory={tmp_path}/output\n'
                                         'command.to.get.application.version=echo 1.0\n')
        parser = it_step.get_opts_it(argparse.ArgumentParser())

        args = parser.parse_args(['--it_conf', str(conf), '--application_path', str(tmp_path), '--generate_new'])
        suite = it_step.it(args)
        assert suite.success_count == 1

        (tests_dir/'sort_test'/'expected_1.0'/'sorted.txt').write_text('z\n')
        args = parser.parse_args(['--it_conf', str(conf), '--application_path', str(tmp_path),
                                  '--outdir', str(tmp_path/'second')])
        with pytest.raises(ITError, match='sort_test'):
            it_step.it(args)

    def test_configuration_required(self, tmp_path):
        parser = it_step.get_opts_it(argparse.ArgumentParser())
        with pytest.raises(EoulsanError, match='No integration tests configuration'):
            it_step.it(parser.parse_args(['--application_path', str(tmp_path)]))
