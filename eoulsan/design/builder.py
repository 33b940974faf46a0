import os
import re
import uuid
import logging
from collections import OrderedDict
from datetime import datetime
from pathlib import Path
import pysam

from eoulsan.tools.common import get_extension, remove_compression_extension, to_valid_name
from eoulsan.tools.fastq import FASTQ_SANGER, identify_fastq_file
from eoulsan.design.model import Design, DesignError, DesignMetadata


logger = logging.getLogger(__name__)

MAX_FASTQ_ENTRIES_TO_READ = 10000
ILLUMINA_FASTQ_FILENAME_PATTERN = re.compile(r'^(.+)_\w+_L\d\d\d_R\d_\d\d\d$')
ILLUMINA_READ_ID_PATTERN = re.compile(
    r'^([a-zA-Z0-9\-_]+):(\d+):([a-zA-Z0-9\-]+):(\d+):(\d+):(\d+):(\d+) ([12]):([YN]):(\d+):([ATGCN\-+]*|\d+)$')

FASTQ_EXTENSIONS = ['fastq', 'fq']
FASTA_EXTENSIONS = ['fasta', 'fa', 'fna']
GFF_EXTENSIONS = ['gff', 'gff3']
GTF_EXTENSIONS = ['gtf']
ADDITIONAL_ANNOTATION_EXTENSIONS = ['tsv']


class EmptyFastqError(DesignError):
    pass


def get_first_read_id(path):
    with pysam.FastxFile(str(path)) as fh:
        for entry in fh:
            if entry.comment:
                return f'{entry.name} {entry.comment}'
            return entry.name
    raise EmptyFastqError(f"Fastq file is empty: {path}")


def parse_read_id(read_id):
    """
    Return the prefix shared by the two members of a pair and the pair member.
    """
    match = ILLUMINA_READ_ID_PATTERN.match(read_id)
    if match:
        instrument, _, _, lane, tile, x, y, member = match.groups()[:8]
        return '\t'.join([instrument, lane, tile, x, y]), int(member)
    if read_id.endswith('/1'):
        return read_id[:-2], 1
    if read_id.endswith('/2'):
        return read_id[:-2], 2
    return read_id, 1


def define_sample_name(path):
    basename = os.path.basename(remove_compression_extension(path))
    if '.' in basename:
        basename = basename.rsplit('.', 1)[0]
    match = ILLUMINA_FASTQ_FILENAME_PATTERN.match(basename)
    if match:
        basename = match.group(1)
    return basename


def to_letter(i):
    return chr(ord('a') + i)


class FastqEntry():
    def __init__(self, path):
        self.path = Path(path)
        self.sample_name = define_sample_name(self.path.name)
        self.sample_id = to_valid_name(self.sample_name)
        self.sample_date = datetime.fromtimestamp(os.path.getmtime(self.path)).strftime('%Y-%m-%d')
        self.first_read_id = get_first_read_id(self.path)
        self.prefix, self.pair_member = parse_read_id(self.first_read_id)

    def __eq__(self, other):
        return isinstance(other, FastqEntry) and self.path == other.path

    def __hash__(self):
        return hash(self.path)

    def __repr__(self):
        return f'FastqEntry(Sample: {self.sample_id}, Path: {self.path})'


class DesignBuilder():
    """
    Build a design from fastq, genome and annotation files.
    """
    def __init__(self):
        self.fastq_map = OrderedDict()
        self.prefix_map = {}
        self.genome_file = None
        self.gff_file = None
        self.gtf_file = None
        self.additional_annotation_file = None

    def add_file(self, path):
        if path is None:
            return
        path = Path(path)
        if not path.is_file():
            raise DesignError(f"File {path} does not exist or is not a regular file.")

        logger.info("Add file %s to design.", path)
        extension = get_extension(path.name)

        if extension in FASTQ_EXTENSIONS:
            try:
                entry = FastqEntry(path)
            except EmptyFastqError as e:
                logger.warning(str(e))
                return

            sample_id = self.prefix_map.setdefault(entry.prefix, entry.sample_id)
            entries = self.fastq_map.setdefault(sample_id, [])
            if entry not in entries:
                entries.append(entry)
        elif extension in FASTA_EXTENSIONS:
            self.genome_file = path
        elif extension in GFF_EXTENSIONS:
            self.gff_file = path
        elif extension in GTF_EXTENSIONS:
            self.gtf_file = path
        elif extension in ADDITIONAL_ANNOTATION_EXTENSIONS:
            self.additional_annotation_file = path
        else:
            raise DesignError(f"Unknown file type: {path}")

    def add_files(self, paths):
        for path in paths or []:
            self.add_file(path)

    @staticmethod
    def find_paired_end_files(entries):
        groups = OrderedDict()
        for entry in entries:
            groups.setdefault(entry.prefix, []).append(entry)

        result = list(groups.values())
        for group in result:
            if len(group) > 2:
                raise DesignError(f"Found more than 2 files for a sample in paired-end mode: {group}")
            if len(group) == 2:
                member1, member2 = group[0].pair_member, group[1].pair_member
                if member1 == member2:
                    raise DesignError(f"Found two files with the same pair member: {group}")
                if member1 == 2:
                    group.reverse()
        return result

    def get_design(self, paired_end=True):
        design = Design()
        design.add_experiment('exp1')

        for sample_id, entries in self.fastq_map.items():
            groups = self.find_paired_end_files(entries)
            count = 0
            for group in groups:
                first = group[0]
                if paired_end:
                    suffix = '' if len(groups) == 1 else to_letter(count)
                    self._add_sample(design, sample_id + suffix, first.sample_name + suffix, first,
                                     [str(e.path) for e in group])
                    count += 1
                else:
                    for entry in group:
                        suffix = '' if len(entries) == 1 else to_letter(count)
                        self._add_sample(design, sample_id + suffix, first.sample_name + suffix, entry,
                                         [str(entry.path)])
                        count += 1

        return design

    def _add_sample(self, design, sample_id, sample_name, entry, filenames):
        sample = design.add_sample(sample_id)
        sample.name = sample_name
        metadata = sample.metadata
        metadata.set_reads(filenames)
        metadata.set(metadata.DATE_KEY, entry.sample_date)

        for key, path in ((DesignMetadata.GENOME_FILE_KEY, self.genome_file),
                          (DesignMetadata.GFF_FILE_KEY, self.gff_file),
                          (DesignMetadata.GTF_FILE_KEY, self.gtf_file),
                          (DesignMetadata.ADDITIONAL_ANNOTATION_FILE_KEY, self.additional_annotation_file)):
            if path is not None:
                design.metadata.set(key, str(path))

        logger.info("Check fastq format for %s", entry.path)
        fastq_format = identify_fastq_file(entry.path, MAX_FASTQ_ENTRIES_TO_READ)
        condition = entry.sample_name
        metadata.set(metadata.FASTQ_FORMAT_KEY, (fastq_format or FASTQ_SANGER).name)
        metadata.set(metadata.REP_TECH_GROUP_KEY, condition)
        metadata.set(metadata.UUID_KEY, str(uuid.uuid4()))

        experiment_sample = design.experiments[0].add_sample(sample)
        experiment_sample.metadata.set(experiment_sample.metadata.CONDITION_KEY, condition)
        experiment_sample.metadata.set(experiment_sample.metadata.REFERENCE_KEY, 'false')
