import re
import hashlib
from collections import Counter

import pysam
from xopen import xopen

from eoulsan.tools.common import get_extension


class Comparator():
    """
    compare two files, the elements of the files are compared as multisets
    """
    name = None
    extensions = []

    def __init__(self):
        self.number_elements_compared = 0
        self.cause_fail_comparison = None

    def elements(self, path):
        raise NotImplementedError

    def compare_files(self, expected_file, tested_file):
        self.number_elements_compared = 0
        self.cause_fail_comparison = None
        counter = Counter(self.elements(expected_file))

        for element in self.elements(tested_file):
            self.number_elements_compared += 1
            if counter[element] <= 0:
                self.cause_fail_comparison = f'element not found in expected file: {str(element).strip()}'
                return False
            counter[element] -= 1

        remaining = sum(count for count in counter.values() if count > 0)
        if remaining:
            self.cause_fail_comparison = f'{remaining} element(s) of expected file not found in tested file'
            return False
        return True

    def __repr__(self):
        return f'{self.__class__.__name__}(name={self.name}, extensions={self.extensions})'


class BinaryComparator(Comparator):
    name = 'BinaryComparator'
    extensions = []

    def elements(self, path):
        md5 = hashlib.md5()
        with open(path, 'rb') as fh:
            for chunk in iter(lambda: fh.read(65536), b''):
                md5.update(chunk)
        yield md5.hexdigest()


class TextComparator(Comparator):
    name = 'TextComparator'
    extensions = ['txt', 'tsv', 'csv', 'xml', 'html', 'tab', 'fasta', 'fa', 'gff', 'gff3', 'gtf',
                  'bed', 'json']

    def elements(self, path):
        with xopen(path, 'rt') as fh:
            for line in fh:
                yield line.rstrip('\r\n')


class LogComparator(TextComparator):
    """
    log files, the lines with a date, a time or a duration are skipped
    """
    name = 'LogComparator'
    extensions = ['log', 'err', 'out']

    pattern = re.compile(r'\d{4}[-./]\d{2}[-./]\d{2}|\b\d{1,2}:\d{2}:\d{2}\b|\b(duration|elapsed|time)\s*[:=]|\btime used\b',
                         re.IGNORECASE)

    def elements(self, path):
        for line in TextComparator.elements(self, path):
            if not self.pattern.search(line):
                yield line


class FastqComparator(Comparator):
    name = 'FastqComparator'
    extensions = ['fastq', 'fq']

    def elements(self, path):
        with pysam.FastxFile(str(path)) as fh:
            for read in fh:
                name = read.name if not read.comment else f'{read.name} {read.comment}'
                yield (name, read.sequence, read.quality)


class SAMComparator(TextComparator):
    """
    SAM files, the @PG and @CO headers depend on the execution and are skipped
    """
    name = 'SAMComparator'
    extensions = ['sam']
    headers_to_skip = ('@PG', '@CO')

    def elements(self, path):
        for line in TextComparator.elements(self, path):
            if not line.startswith(self.headers_to_skip):
                yield line


class BAMComparator(SAMComparator):
    name = 'BAMComparator'
    extensions = ['bam']

    def elements(self, path):
        with pysam.AlignmentFile(str(path), 'rb', check_sq=False) as fh:
            for line in str(fh.header).splitlines():
                if line and not line.startswith(self.headers_to_skip):
                    yield line
            for read in fh.fetch(until_eof=True):
                yield read.to_string()


COMPARATORS = [TextComparator, LogComparator, FastqComparator, SAMComparator, BAMComparator]


def get_comparator(filename):
    extension = get_extension(str(filename))
    for comparator in COMPARATORS:
        if extension in comparator.extensions:
            return comparator()
    return BinaryComparator()


class FilesComparator():
    """
    compare an expected file and a tested file with the comparator of its extension
    """
    def __init__(self, expected_file, tested_file):
        self.expected_file = expected_file
        self.tested_file = tested_file
        self.comparator = get_comparator(expected_file)

    def compare(self):
        return self.comparator.compare_files(self.expected_file, self.tested_file)

    def detail_comparison(self):
        cause = self.comparator.cause_fail_comparison
        detail = f'fail at comparison #{self.comparator.number_elements_compared}:'
        if cause:
            detail += f' {cause}'
        return detail
