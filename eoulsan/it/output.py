import os
import shutil
import fnmatch
import logging
from enum import Enum
from pathlib import Path, PurePosixPath

from eoulsan.it.config import ITError
from eoulsan.it.comparators import FilesComparator

logger = logging.getLogger(__name__)

NONE_PATTERN = 'none'
DEFAULT_EXCLUDED_PATTERNS = '**/test-source **/test.conf'
DEFAULT_EXCLUDED_PREFIX = 'test-source test.conf'
LENGTH_DIFFERENCE_RATIO = 0.01


class StatusComparison(Enum):
    NOT_EQUALS = (False, 'Comparison failed for output result file: ')
    EQUALS = (True, '')
    UNEXPECTED = (False, 'Found unexpected file in result test directory: ')
    MISSING = (False, 'Missing expected file in result test directory: ')
    TO_COMPARE = (True, 'To compare')

    @property
    def is_success(self):
        return self.value[0]

    @property
    def exception_message(self):
        return self.value[1]


class ITOutputComparisonResult():
    def __init__(self, filename, status=StatusComparison.TO_COMPARE, message=''):
        self.filename = filename
        self.status = status
        self.message = message
        self.expected_file = None
        self.tested_file = None

    def set_result(self, status, message):
        self.status = status
        self.message = message

    @property
    def type(self):
        return 'OK' if self.status.is_success else 'FAIL'

    def report(self):
        text = f'\t{self.type} : {self.filename}'
        if self.status.is_success:
            return text
        return text + f' {self.status.name}\n\t\tOuput file: {self.tested_file}' \
                      f'\n\t\tExpected file: {self.expected_file}\n\t\tError message: {self.message}\n'

    def __lt__(self, other):
        return self.filename < other.filename


def split_patterns(patterns):
    if patterns is None:
        return []
    return [p for p in patterns.split() if p and p != NONE_PATTERN]


def match_pattern(relative_path, pattern):
    """
    a pattern without / is matched on the filename, ** matches any directory level
    """
    relative_path = str(relative_path)
    if '/' not in pattern:
        return fnmatch.fnmatchcase(PurePosixPath(relative_path).name, pattern)
    if pattern.startswith('**/') and match_pattern(relative_path, pattern[3:]):
        return True
    return fnmatch.fnmatchcase(relative_path, pattern)


def match_any(relative_path, patterns):
    return any(match_pattern(relative_path, p) for p in patterns)


def list_files(directory):
    """
    files of the directory, the symbolic links of directories are not followed
    """
    directory = Path(directory)
    result = []
    for root, dirs, files in os.walk(directory):
        for d in dirs:
            if os.path.islink(os.path.join(root, d)):
                result.append(Path(root)/d)
        for f in files:
            result.append(Path(root)/f)
    return sorted(result)


def extract_pattern(value):
    if value is None or not value.strip():
        return NONE_PATTERN
    return value.strip()


def excluded_patterns(value):
    if value is None or value.strip() in ('', NONE_PATTERN):
        return DEFAULT_EXCLUDED_PATTERNS
    return f'{DEFAULT_EXCLUDED_PREFIX} {value.strip()}'


class ITOutput():
    """
    files of the output directory of an integration test, selected by the patterns of the test
    """
    def __init__(self, directory, files_to_compare_patterns, excluded_files_patterns,
                 files_to_check_length_patterns, files_to_check_existence_patterns,
                 files_to_check_absence_patterns):
        self.directory = Path(directory)
        self.files_to_compare_patterns = files_to_compare_patterns
        self.excluded_files_patterns = excluded_files_patterns
        self.files_to_check_length_patterns = files_to_check_length_patterns
        self.files_to_check_existence_patterns = files_to_check_existence_patterns
        self.files_to_check_absence_patterns = files_to_check_absence_patterns

        if not self.directory.is_dir():
            raise ITError(f"Output directory not found: {self.directory}")

        all_files = list_files(self.directory)
        excluded = set(self._collect(all_files, self.excluded_files_patterns))
        if self.files_to_compare_patterns is None or not self.files_to_compare_patterns.strip():
            content = all_files
        else:
            content = self._collect(all_files, self.files_to_compare_patterns)

        self.files_to_compare_content = [f for f in content if f not in excluded]
        self.files_to_check_length = [f for f in self._collect(all_files, self.files_to_check_length_patterns)
                                      if f not in excluded and f not in self.files_to_compare_content]
        self.files_to_check_existence = [f for f in self._collect(all_files, self.files_to_check_existence_patterns)
                                         if f not in excluded and f not in self.files_to_compare_content
                                         and f not in self.files_to_check_length]
        self.files_to_check_absence = self._collect(all_files, self.files_to_check_absence_patterns)

    def _collect(self, files, patterns):
        patterns = split_patterns(patterns)
        if not patterns:
            return []
        return [f for f in files if match_any(f.relative_to(self.directory).as_posix(), patterns)]

    @property
    def files_to_compare(self):
        return self.files_to_compare_content + self.files_to_check_length + self.files_to_check_existence

    def copy_files(self, destination):
        """
        copy the files to compare in the expected directory
        """
        destination = Path(destination)
        files = self.files_to_compare
        if not files:
            return 0

        copied = 0
        for f in files:
            target = destination/f.name
            if target.exists():
                continue
            shutil.copyfile(f, target)
            copied += 1

        if copied == 0:
            raise ITError(f"Fail: none file to copy in destination {destination}")
        return copied

    def compare_to(self, expected):
        results = []
        tested_by_name = {f.name: f for f in self.files_to_compare}

        for category, files in (('content', expected.files_to_compare_content),
                                ('length', expected.files_to_check_length),
                                ('existence', expected.files_to_check_existence)):
            for expected_file in files:
                result = ITOutputComparisonResult(expected_file.name)
                result.expected_file = expected_file
                tested_file = tested_by_name.pop(expected_file.name, None)
                if tested_file is None:
                    result.set_result(StatusComparison.MISSING,
                                      f'missing file in output test directory {self.directory}')
                else:
                    result.tested_file = tested_file
                    self._compare_file(category, result, expected_file, tested_file)
                results.append(result)

        for tested_file in tested_by_name.values():
            result = ITOutputComparisonResult(tested_file.name, StatusComparison.UNEXPECTED,
                                              f'unexpected file in test data directory {expected.directory}')
            result.tested_file = tested_file
            results.append(result)

        for tested_file in self.files_to_check_absence:
            result = ITOutputComparisonResult(
                tested_file.name, StatusComparison.UNEXPECTED,
                f'Unexpected file in output test directory matched to patterns {self.files_to_check_absence_patterns}')
            result.tested_file = tested_file
            results.append(result)

        return sorted(results)

    def _compare_file(self, category, result, expected_file, tested_file):
        if category == 'content':
            comparator = FilesComparator(expected_file, tested_file)
            if comparator.compare():
                result.set_result(StatusComparison.EQUALS, '')
            else:
                result.set_result(StatusComparison.NOT_EQUALS,
                                  f'{comparator.comparator.name}: {comparator.detail_comparison()}')
        elif category == 'length':
            expected_length = expected_file.stat().st_size
            tested_length = tested_file.stat().st_size
            if abs(expected_length - tested_length) <= expected_length * LENGTH_DIFFERENCE_RATIO:
                result.set_result(StatusComparison.EQUALS, '')
            else:
                result.set_result(StatusComparison.NOT_EQUALS,
                                  f'different length: expected {expected_length}, tested {tested_length}')
        elif tested_file.stat().st_size > 0 or expected_file.stat().st_size == 0:
            result.set_result(StatusComparison.EQUALS, '')
        else:
            result.set_result(StatusComparison.NOT_EQUALS, 'file tested can not be empty.')

    def delete_file_matching_on_pattern(self, remove_patterns, test_succeeded, delete_required):
        """
        remove the files matching the patterns when the test succeeded and the deletion is required,
        return the text added to the report
        """
        msg = '\nClean output directory:\n'
        if not test_succeeded:
            if delete_required:
                msg += '\tConfiguration required to delete files, but test fail. Files still exist in '
            else:
                msg += '\tConfiguration required always to keep files in '
            msg += str(self.directory.absolute())

        if not (test_succeeded and delete_required):
            return msg + '\n\tDelete file matching on patterns no required.'

        msg += f'\tTest succeeded.\n\tConfiguration required to delete files from directory ' \
               f'{self.directory.absolute()}'
        links = []
        success = True
        excluded = set(self._collect(list_files(self.directory), self.excluded_files_patterns))
        for f in self._collect(list_files(self.directory), remove_patterns):
            if f in excluded:
                continue
            if f.is_symlink():
                links.append(f)
                continue
            try:
                f.unlink()
            except OSError:
                success = False
                msg += f'\n\tFail to delete file {f.absolute()}'

        for link in links:
            if not link.exists():
                logger.debug('Remove broken symbolic link %s', link)
                link.unlink()

        if success:
            msg += '\n\tAll deletions successful.'
        return msg
