import shutil
import logging
from datetime import datetime, timedelta

from eoulsan.it.output import NONE_PATTERN

logger = logging.getLogger(__name__)


def to_time_human_readable(seconds):
    return str(timedelta(seconds=round(seconds)))


class ITResult():
    """
    result of an integration test and its report
    """
    def __init__(self, it):
        self.it = it
        self.command_results = []
        self.comparison_results = []
        self.exception = None
        self.exception_message = ''
        self.nothing_to_do = False
        self.generated_data = False
        self.copied_files = 0
        self.comments = []

    def add_command_result(self, command_result):
        if command_result is None:
            return
        self.command_results.append(command_result)
        if command_result.caught_exception:
            self.set_exception(command_result.exception, command_result.exception_message)

    def add_comparisons_results(self, results):
        self.comparison_results = list(results)

    def add_comments(self, msg):
        self.comments.append(msg)

    def set_exception(self, exception, message=None):
        self.exception = exception
        self.exception_message = message if message is not None else str(exception)

    @property
    def is_success(self):
        return self.exception is None

    def check_needed_throw_exception(self):
        """
        the failed comparisons become the exception of the test
        """
        msg = ''
        for result in self.comparison_results:
            if not result.status.is_success:
                msg += f'\n\t{result.status.exception_message}\t{result.filename}'
        if msg:
            self.set_exception(AssertionError(msg), msg)

    def create_exception_text(self, with_stack=True):
        if self.exception is None:
            return ''
        txt = f'\n=== Execution Test Error ===\nFrom class: \n\t{type(self.exception).__name__}' \
              f'\nException message: \n{self.exception_message}\n'
        if with_stack and self.command_results:
            txt += self.command_results[-1].stderr_message()
        return txt

    def create_report_text(self, duration):
        it = self.it
        status = 'SUCCESS' if self.is_success else 'FAIL'
        action = 'generate expected data' if self.generated_data else 'test execution and output files comparison'
        lines = [
            f'{status}: {it.test_name}: {action}.',
            f'\nDate: {datetime.now().strftime("%Y.%m.%d %H:%M:%S")}',
            f'\nDirectories:\n\tExpected: {it.expected_test_directory}\n\tOuput: {it.output_test_directory}',
            '\nPatterns:',
        ]
        output = getattr(it, 'output', None)
        for label, pattern, files in (
                ('files to compare content', it.files_to_compare_patterns,
                 output.files_to_compare_content if output else []),
                ('files to check length', it.files_to_check_length_patterns,
                 output.files_to_check_length if output else []),
                ('files to check existence', it.files_to_check_existence_patterns,
                 output.files_to_check_existence if output else []),
                ('files to check absence', it.files_to_check_absence_patterns,
                 output.files_to_check_absence if output else []),
                ('excluded files', it.excluded_files_patterns, None),
                ('files to remove', it.files_to_remove_patterns, None)):
            line = f'\t{label}: {pattern}'
            if files is not None and pattern != NONE_PATTERN:
                line += f' ({len(files)} file(s))'
            lines.append(line)

        lines.append(f'\nDuration one script maximum: {it.duration_max} minutes.')
        for command_result in self.command_results:
            lines.append(command_result.report())

        if self.generated_data:
            lines.append(f'\nSUCCESS: copy files {self.copied_files} to {it.expected_test_directory}')

        if not self.is_success:
            lines.append(self.create_exception_text())
        elif self.comparison_results:
            lines.append('\nComparisons:')
            for result in self.comparison_results:
                lines.append(result.report())

        lines.extend(self.comments)
        lines.append(f'\nTest duration: {duration}')
        return '\n'.join(lines)

    def create_report_file(self, duration_seconds):
        duration = to_time_human_readable(duration_seconds)
        self._log_end(duration)
        if self.nothing_to_do:
            return None

        filename = 'SUCCESS' if self.is_success else 'FAIL'
        report_file = self.it.output_test_directory/filename
        report_file.write_text(self.create_report_text(duration) + '\n')

        if self.generated_data:
            shutil.copyfile(report_file, self.it.expected_test_directory/filename)
        return report_file

    def _log_end(self, duration):
        name = self.it.test_name
        if self.nothing_to_do:
            logger.info('%s: nothing to do, expected data already exist', name)
        elif self.is_success:
            action = 'generate expected data' if self.generated_data else 'test execution and comparison'
            logger.info('%s: SUCCESS %s in %s', name, action, duration)
        else:
            logger.warning('%s: FAIL in %s%s', name, duration, self.create_exception_text(False))

    def create_short_report(self):
        if self.is_success:
            return ''
        return f'Fail test: {self.it.test_name}\n\tdirectory: {self.it.output_test_directory}' \
               f'{self.create_exception_text(False)}'
