import os
import re
import shlex
import logging
import threading
from pathlib import Path

from eoulsan.tools.fastq import FASTQ_ILLUMINA, FASTQ_ILLUMINA_1_5, FASTQ_SOLEXA
from eoulsan.mapping.executor import MapperError
from eoulsan.mapping.process import MapperProcess, FastqCopyThread, create_named_pipe, to_fastq
from eoulsan.mapping.soap2sam import SOAP2SAM, index_sequence_lengths


logger = logging.getLogger(__name__)

SYNC = threading.Lock()

STANDARD_FLAVOR = 'standard'
LARGE_INDEX_FLAVOR = 'large-index'


def arguments_as_list(arguments):
    if arguments is None:
        return []
    if isinstance(arguments, str):
        return shlex.split(arguments)
    return [str(a) for a in arguments]


def parse_version(version):
    return tuple(int(x) for x in re.findall(r'\d+', str(version or '')))


def normalize_flavor(flavor):
    return flavor.strip().lower() if flavor else None


def get_index_path(mapper_name, index_dir, extension):
    """
    path of the index in index_dir without the extension of its index file
    """
    index_dir = Path(index_dir)
    files = sorted(f for f in index_dir.iterdir() if f.name.endswith(extension))
    if len(files) != 1:
        raise MapperError(f"Unable to get index file for {mapper_name} with \"{extension}\" extension "
                          f"in directory: {index_dir}")
    return Path(str(files[0])[:-len(extension)])


def execute_to_string(executor, command):
    result = executor.execute(command, None, True, None, True, [])
    output = result.stdout.read()
    result.wait_for()
    return output.decode('utf-8', errors='replace')


def install(executor, name):
    with SYNC:
        return executor.install(name)


class CommandMapperProcess(MapperProcess):
    """
    MapperProcess with a single command built by a function of the process
    """
    def __init__(self, mapping, stderr_file, paired_end, input_file1, input_file2, command_factory,
                 execution_dir=None):
        self.mapping = mapping
        self.command_factory = command_factory
        self.execution_dir = execution_dir
        MapperProcess.__init__(self, mapping.name, mapping.executor, mapping.tmp_dir, stderr_file, paired_end,
                               input_file1, input_file2)

    def create_command_lines(self):
        return [self.command_factory(self)]

    def execution_directory(self):
        return self.execution_dir or self.tmp_dir


class MapperProvider():
    name = None
    default_version = None
    default_flavor = None
    default_arguments = ''
    multiple_instances_allowed = False
    compress_index = True

    def indexer_executables(self, instance):
        raise NotImplementedError

    def mapper_executable(self, instance):
        raise NotImplementedError

    def check_flavor(self, flavor):
        raise NotImplementedError

    def read_binary_version(self, instance):
        raise NotImplementedError

    def indexer_command(self, indexer, genome_file, indexer_arguments, threads):
        raise NotImplementedError

    def map_se(self, mapping, input_file=None, stderr_file=None, log_file=None):
        raise NotImplementedError

    def map_pe(self, mapping, input_file1=None, input_file2=None, stderr_file=None, log_file=None):
        raise NotImplementedError

    def _read_version(self, instance, arguments, parse):
        try:
            path = install(instance.executor, self.mapper_executable(instance))
            lines = execute_to_string(instance.executor, [path] + arguments).split('\n')
        except (MapperError, OSError) as e:
            logger.warning("Unable to read the version of %s: %s", self.name, e)
            return None
        return parse(lines)

    def __repr__(self):
        return f'{self.__class__.__name__}(name={self.name})'


def _version_after_token(token):
    def parse(lines):
        if not lines:
            return None
        tokens = lines[0].split(token)
        return tokens[1].strip() if len(tokens) > 1 else None
    return parse


class BWAAlnProcess(MapperProcess):
    """
    bwa aln then bwa samse or sampe. The sai files are named pipes. When entries are used, the reads
    are also copied in files sent to samse or sampe once the writers are closed.
    """
    def __init__(self, mapping, bwa_path, index_path, stderr_file, paired_end, input_file1=None,
                 input_file2=None):
        self.mapping = mapping
        self.bwa_path = bwa_path
        self.index_path = index_path
        MapperProcess.__init__(self, mapping.name, mapping.executor, mapping.tmp_dir, stderr_file, paired_end,
                               input_file1, input_file2)

    def additional_init(self):
        self.copy_writer1 = None
        self.copy_writer2 = None
        self.fastq_file1 = self.pipe_file1
        self.fastq_file2 = self.pipe_file2
        if self.paired_end:
            self.sai_files = [create_named_pipe(self.tmp_dir/f'bwa-sai1-{self.uuid}.sai'),
                              create_named_pipe(self.tmp_dir/f'bwa-sai2-{self.uuid}.sai')]
        else:
            self.sai_files = [create_named_pipe(self.tmp_dir/f'bwa-sai-{self.uuid}.sai')]
        self.add_files_to_remove(*self.sai_files)

        if not self.input_file_mode:
            if self.paired_end:
                self.fastq_file1 = self.tmp_dir/f'bwa-fastq1-{self.uuid}.fq'
                self.fastq_file2 = self.tmp_dir/f'bwa-fastq2-{self.uuid}.fq'
                self.copy_writer1 = FastqCopyThread(self.fastq_file1, self.tmp_dir/f'bwa-copy1-{self.uuid}.fq',
                                                    'BWA sampe first pair writer')
                self.copy_writer2 = FastqCopyThread(self.fastq_file2, self.tmp_dir/f'bwa-copy2-{self.uuid}.fq',
                                                    'BWA sampe second pair writer')
            else:
                self.fastq_file1 = self.tmp_dir/f'bwa-fastq-{self.uuid}.fq'
                self.copy_writer1 = FastqCopyThread(self.fastq_file1, self.tmp_dir/f'bwa-copy-{self.uuid}.fq',
                                                    'BWA samse writer')
            for writer in self.copy_writers():
                self.add_files_to_remove(writer.pipe_file, writer.copy_file)

    def copy_writers(self):
        return [w for w in (self.copy_writer1, self.copy_writer2) if w is not None]

    def wait_for(self):
        MapperProcess.wait_for(self)
        for writer in self.copy_writers():
            if writer.exception is not None:
                raise MapperError(f"{writer.name}: {writer.exception}")

    def remove_files(self):
        for writer in self.copy_writers():
            writer.stop()
        MapperProcess.remove_files(self)

    def write_entry(self, name1, sequence1, quality1, name2=None, sequence2=None, quality2=None):
        MapperProcess.write_entry(self, name1, sequence1, quality1, name2, sequence2, quality2)
        self.copy_writer1.write(to_fastq(name1, sequence1, quality1))
        if name2 is not None:
            self.copy_writer2.write(to_fastq(name2, sequence2, quality2))

    def write_entry1(self, read):
        MapperProcess.write_entry1(self, read)
        self.copy_writer1.write(to_fastq(read.name, read.sequence, read.quality))

    def write_entry2(self, read):
        MapperProcess.write_entry2(self, read)
        self.copy_writer2.write(to_fastq(read.name, read.sequence, read.quality))

    def close_writer1(self):
        MapperProcess.close_writer1(self)
        if self.copy_writer1 is not None:
            self.copy_writer1.close()

    def close_writer2(self):
        MapperProcess.close_writer2(self)
        if self.copy_writer2 is not None:
            self.copy_writer2.close()

    def aln_command(self, threads, sai_file, reads_file):
        cmd = [self.bwa_path, BWAMapperProvider.ALN_FLAVOR]
        if self.mapping.fastq_format in (FASTQ_ILLUMINA, FASTQ_ILLUMINA_1_5):
            cmd.append('-I')
        cmd.extend(self.mapping.mapper_arguments)
        cmd.extend(['-t', str(threads), '-f', str(sai_file), str(self.index_path), str(reads_file)])
        return cmd

    def create_command_lines(self):
        threads = self.mapping.threads
        if not self.paired_end:
            return [self.aln_command(threads, self.sai_files[0], self.pipe_file1),
                    [self.bwa_path, 'samse', str(self.index_path), str(self.sai_files[0]), str(self.fastq_file1)]]

        threads = threads // 2 if threads > 1 else 1
        return [self.aln_command(threads, self.sai_files[0], self.pipe_file1),
                self.aln_command(threads, self.sai_files[1], self.pipe_file2),
                [self.bwa_path, 'sampe', str(self.index_path), str(self.sai_files[0]), str(self.sai_files[1]),
                 str(self.fastq_file1), str(self.fastq_file2)]]


class BWAMapperProvider(MapperProvider):
    name = 'BWA'
    default_version = '0.6.2'
    ALN_FLAVOR = 'aln'
    MEM_FLAVOR = 'mem'
    default_flavor = ALN_FLAVOR
    default_arguments = '-l 28'
    EXECUTABLE = 'bwa'
    MIN_BWTSW_GENOME_SIZE = 1024 * 1024 * 1024

    def indexer_executables(self, instance):
        return [self.EXECUTABLE]

    def mapper_executable(self, instance):
        return self.EXECUTABLE

    def check_flavor(self, flavor):
        return normalize_flavor(flavor) in (self.ALN_FLAVOR, self.MEM_FLAVOR)

    def read_binary_version(self, instance):
        def parse(lines):
            for line in lines:
                if line.startswith('Version:'):
                    tokens = line.split(':')
                    if len(tokens) > 1:
                        return tokens[1].strip()
            return None
        return self._read_version(instance, [], parse)

    def indexer_command(self, indexer, genome_file, indexer_arguments, threads):
        genome_file = Path(genome_file)
        if genome_file.stat().st_size >= self.MIN_BWTSW_GENOME_SIZE:
            return [str(indexer), 'index', '-a', 'bwtsw', str(genome_file.absolute())]
        return [str(indexer), 'index', str(genome_file.absolute())]

    def index_path(self, mapping):
        return get_index_path(self.name, mapping.index_dir, '.bwt')

    def _mem_command(self, bwa_path, index_path):
        def factory(process):
            cmd = [bwa_path, self.MEM_FLAVOR] + process.mapping.mapper_arguments
            cmd += ['-t', str(process.mapping.threads), str(index_path), str(process.pipe_file1)]
            if process.paired_end:
                cmd.append(str(process.pipe_file2))
            return cmd
        return factory

    def map_se(self, mapping, input_file=None, stderr_file=None, log_file=None):
        bwa_path = install(mapping.executor, self.EXECUTABLE)
        index_path = self.index_path(mapping)
        if normalize_flavor(mapping.flavor) != self.MEM_FLAVOR:
            return BWAAlnProcess(mapping, bwa_path, index_path, stderr_file, False, input_file)
        return CommandMapperProcess(mapping, stderr_file, False, input_file, None,
                                    self._mem_command(bwa_path, index_path))

    def map_pe(self, mapping, input_file1=None, input_file2=None, stderr_file=None, log_file=None):
        bwa_path = install(mapping.executor, self.EXECUTABLE)
        index_path = self.index_path(mapping)
        if normalize_flavor(mapping.flavor) != self.MEM_FLAVOR:
            return BWAAlnProcess(mapping, bwa_path, index_path, stderr_file, True, input_file1, input_file2)
        return CommandMapperProcess(mapping, stderr_file, True, input_file1, input_file2,
                                    self._mem_command(bwa_path, index_path))


class STARMapperProvider(MapperProvider):
    name = 'STAR'
    default_version = '2.7.2d'
    default_flavor = STANDARD_FLAVOR
    default_arguments = '--outSAMunmapped Within'

    def flavored_binary(self, flavor):
        if normalize_flavor(flavor) == LARGE_INDEX_FLAVOR:
            return 'STARlong'
        return 'STAR'

    def indexer_executables(self, instance):
        return [self.flavored_binary(instance.flavor)]

    def mapper_executable(self, instance):
        return self.flavored_binary(instance.flavor)

    def check_flavor(self, flavor):
        return normalize_flavor(flavor) in (STANDARD_FLAVOR, LARGE_INDEX_FLAVOR)

    def read_binary_version(self, instance):
        return self._read_version(instance, ['--version'], _version_after_token('_'))

    def indexer_command(self, indexer, genome_file, indexer_arguments, threads):
        genome_file = Path(genome_file).absolute()
        return [str(indexer), '--runThreadN', str(threads), '--runMode', 'genomeGenerate',
                '--genomeDir', str(genome_file.parent), '--genomeFastaFiles', str(genome_file)] + \
            arguments_as_list(indexer_arguments)

    def _command(self, star_path, log_file):
        def factory(process):
            mapping = process.mapping
            cmd = [star_path, '--runThreadN', str(mapping.threads), '--genomeDir', str(Path(mapping.index_dir).absolute())]
            if log_file is not None:
                cmd += ['--outFileNamePrefix', str(Path(log_file).absolute())]
            cmd += ['--outStd', 'SAM'] + mapping.mapper_arguments
            cmd += ['--readFilesIn', str(process.pipe_file1)]
            if process.paired_end:
                cmd.append(str(process.pipe_file2))
            return cmd
        return factory

    def map_se(self, mapping, input_file=None, stderr_file=None, log_file=None):
        star_path = install(mapping.executor, self.flavored_binary(mapping.flavor))
        return CommandMapperProcess(mapping, stderr_file, False, input_file, None, self._command(star_path, log_file))

    def map_pe(self, mapping, input_file1=None, input_file2=None, stderr_file=None, log_file=None):
        star_path = install(mapping.executor, self.flavored_binary(mapping.flavor))
        return CommandMapperProcess(mapping, stderr_file, True, input_file1, input_file2,
                                    self._command(star_path, log_file))


def bowtie_quality_argument(fastq_format):
    if fastq_format == FASTQ_SOLEXA:
        return '--solexa-quals'
    if fastq_format in (FASTQ_ILLUMINA, FASTQ_ILLUMINA_1_5):
        return '--phred64'
    return '--phred33'


class AbstractBowtieMapperProvider(MapperProvider):
    """
    common code of Bowtie and Bowtie2. The mappers run in the index directory.
    """
    default_flavor = STANDARD_FLAVOR
    multiple_instances_allowed = True
    executable = None
    flavored_executable = None
    indexer = None
    first_flavored_version = None
    index_extension = None
    large_index_extension = None

    def check_flavor(self, flavor):
        return flavor is None or normalize_flavor(flavor) in (STANDARD_FLAVOR, LARGE_INDEX_FLAVOR)

    def is_flavored_version(self, version):
        return parse_version(version or self.default_version) >= parse_version(self.first_flavored_version)

    def is_large_index(self, version, flavor):
        return self.is_flavored_version(version) and normalize_flavor(flavor) == LARGE_INDEX_FLAVOR

    def flavored_binary(self, version, flavor):
        if self.is_flavored_version(version):
            suffix = '-l' if normalize_flavor(flavor) == LARGE_INDEX_FLAVOR else '-s'
            return self.flavored_executable + suffix
        return self.executable

    def indexer_executables(self, instance):
        return [self.indexer]

    def mapper_executable(self, instance):
        return self.flavored_binary(instance.version, instance.flavor)

    def read_binary_version(self, instance):
        return self._read_version(instance, ['--version'], _version_after_token(' version '))

    def indexer_command(self, indexer, genome_file, indexer_arguments, threads):
        return [str(indexer), str(Path(genome_file).absolute()), 'genome']

    def index_argument(self, mapping):
        extension = self.index_extension
        if self.is_large_index(mapping.version, mapping.flavor):
            extension = self.large_index_extension
        return get_index_path(self.name, mapping.index_dir, extension).name

    def create_common_args(self, mapping, bowtie_path, index):
        raise NotImplementedError

    def _command(self, bowtie_path, index):
        def factory(process):
            mapping = process.mapping
            cmd = self.create_common_args(mapping, bowtie_path, index)
            if mapping.multiple_instances_enabled:
                cmd.append('--mm')
            if process.paired_end:
                cmd += ['-1', str(process.pipe_file1), '-2', str(process.pipe_file2)]
            else:
                cmd += ['-q', str(process.pipe_file1)]
            return cmd
        return factory

    def map_se(self, mapping, input_file=None, stderr_file=None, log_file=None):
        bowtie_path = install(mapping.executor, self.flavored_binary(mapping.version, mapping.flavor))
        index = self.index_argument(mapping)
        return CommandMapperProcess(mapping, stderr_file, False, input_file, None, self._command(bowtie_path, index),
                                    execution_dir=mapping.index_dir)

    def map_pe(self, mapping, input_file1=None, input_file2=None, stderr_file=None, log_file=None):
        bowtie_path = install(mapping.executor, self.flavored_binary(mapping.version, mapping.flavor))
        index = self.index_argument(mapping)
        return CommandMapperProcess(mapping, stderr_file, True, input_file1, input_file2,
                                    self._command(bowtie_path, index), execution_dir=mapping.index_dir)


class BowtieMapperProvider(AbstractBowtieMapperProvider):
    name = 'Bowtie'
    default_version = '0.12.9'
    default_arguments = '--best -k 2'
    executable = 'bowtie'
    flavored_executable = 'bowtie-align'
    indexer = 'bowtie-build'
    first_flavored_version = '1.1.0'
    index_extension = '.rev.1.ebwt'
    large_index_extension = '.rev.1.ebwtl'

    def create_common_args(self, mapping, bowtie_path, index):
        return [bowtie_path, '-S', bowtie_quality_argument(mapping.fastq_format)] + mapping.mapper_arguments + \
            ['-p', str(mapping.threads), index]


class Bowtie2MapperProvider(AbstractBowtieMapperProvider):
    name = 'Bowtie2'
    default_version = '2.0.6'
    default_arguments = '--very-sensitive'
    executable = 'bowtie2'
    flavored_executable = 'bowtie2-align'
    indexer = 'bowtie2-build'
    first_flavored_version = '2.0.3'
    index_extension = '.rev.1.bt2'
    large_index_extension = '.rev.1.bt2l'

    def create_common_args(self, mapping, bowtie_path, index):
        return [bowtie_path, bowtie_quality_argument(mapping.fastq_format)] + mapping.mapper_arguments + \
            ['-p', str(mapping.threads), '-x', index]


def gsnap_quality_argument(fastq_format):
    if fastq_format == FASTQ_SOLEXA:
        raise MapperError("GSNAP not handle the Solexa FASTQ format.")
    if fastq_format in (FASTQ_ILLUMINA, FASTQ_ILLUMINA_1_5):
        return '--quality-protocol=illumina'
    return '--quality-protocol=sanger'


class GSNAPMapperProvider(MapperProvider):
    name = 'GSNAP'
    default_version = '2012-07-20'
    GSNAP_FLAVOR = 'gsnap'
    GMAP_FLAVOR = 'gmap'
    default_flavor = GSNAP_FLAVOR
    default_arguments = '-N 1'
    INDEXER_EXECUTABLES = ['fa_coords', 'gmap_process', 'gmapindex', 'gmap_build']

    def flavored_binary(self, flavor):
        if normalize_flavor(flavor) == self.GMAP_FLAVOR:
            return self.GMAP_FLAVOR
        return self.GSNAP_FLAVOR

    def indexer_executables(self, instance):
        return list(self.INDEXER_EXECUTABLES)

    def mapper_executable(self, instance):
        return self.flavored_binary(instance.flavor)

    def check_flavor(self, flavor):
        return normalize_flavor(flavor) in (self.GSNAP_FLAVOR, self.GMAP_FLAVOR)

    def read_binary_version(self, instance):
        return self._read_version(instance, ['--version'], _version_after_token(' version '))

    def indexer_command(self, indexer, genome_file, indexer_arguments, threads):
        genome_file = Path(genome_file).absolute()
        cmd = [str(indexer)]
        binaries_dir = os.path.dirname(str(indexer))
        if binaries_dir:
            cmd += ['-B', binaries_dir]
        return cmd + ['-D', str(genome_file.parent), '-d', 'genome', str(genome_file)]

    def _command(self, gsnap_path, quality):
        def factory(process):
            mapping = process.mapping
            cmd = [gsnap_path]
            if self.flavored_binary(mapping.flavor) == self.GSNAP_FLAVOR:
                cmd += ['-A', 'sam']
            else:
                cmd += ['-f', 'sampe' if process.paired_end else 'samse']
            cmd += [quality, '-t', str(mapping.threads), '-D', str(Path(mapping.index_dir).absolute()), '-d', 'genome']
            cmd += mapping.mapper_arguments
            cmd.append(str(process.pipe_file1))
            if process.paired_end:
                cmd.append(str(process.pipe_file2))
            return cmd
        return factory

    def map_se(self, mapping, input_file=None, stderr_file=None, log_file=None):
        gsnap_path = install(mapping.executor, self.flavored_binary(mapping.flavor))
        quality = gsnap_quality_argument(mapping.fastq_format)
        return CommandMapperProcess(mapping, stderr_file, False, input_file, None, self._command(gsnap_path, quality))

    def map_pe(self, mapping, input_file1=None, input_file2=None, stderr_file=None, log_file=None):
        gsnap_path = install(mapping.executor, self.flavored_binary(mapping.flavor))
        quality = gsnap_quality_argument(mapping.fastq_format)
        return CommandMapperProcess(mapping, stderr_file, True, input_file1, input_file2,
                                    self._command(gsnap_path, quality))


class SOAPOutput():
    """
    SAM stream of SOAP. SOAP writes its alignments in files, they are converted
    to SAM when the stream is first read.
    """
    def __init__(self, process, stream):
        self.process = process
        self.stream = stream
        self.sam = None

    def _open(self):
        if self.sam is None:
            if self.stream is not None:
                while self.stream.read(65536):
                    pass
            exit_value = self.process.last_result.wait_for()
            if exit_value != 0:
                raise MapperError(f"Bad error result for SOAP execution: {exit_value}")
            SOAP2SAM(self.process.aln_file, self.process.unmap_file, self.process.sam_file,
                     sequences=self.process.index_sequences()).convert(self.process.paired_end)
            self.sam = open(self.process.sam_file, 'rb')
        return self.sam

    def read(self, size=-1):
        return self._open().read(size)

    def readline(self):
        return self._open().readline()

    def close(self):
        if self.sam is None:
            self._open()
        self.sam.close()
        if self.stream is not None:
            self.stream.close()


class SOAPProcess(MapperProcess):
    def __init__(self, mapping, soap_path, index_path, stderr_file, paired_end, input_file1=None, input_file2=None):
        self.mapping = mapping
        self.soap_path = soap_path
        self.index_path = index_path
        MapperProcess.__init__(self, mapping.name, mapping.executor, mapping.tmp_dir, stderr_file, paired_end,
                               input_file1, input_file2)

    def additional_init(self):
        self.aln_file = self.tmp_dir/f'soap-aln-{self.uuid}.soap'
        self.unmap_file = self.tmp_dir/f'soap-unmap-{self.uuid}.fasta'
        self.unpaired_file = self.tmp_dir/f'soap-unpaired-{self.uuid}.soap'
        self.sam_file = self.tmp_dir/f'soap-{self.uuid}.sam'
        self.add_files_to_remove(self.aln_file, self.unmap_file, self.unpaired_file, self.sam_file)

    def create_command_lines(self):
        cmd = [self.soap_path] + self.mapping.mapper_arguments
        cmd += ['-p', str(self.mapping.threads), '-a', str(self.pipe_file1)]
        if self.paired_end:
            cmd += ['-b', str(self.pipe_file2), '-2', str(self.unpaired_file)]
        cmd += ['-D', str(self.index_path), '-o', str(self.aln_file), '-u', str(self.unmap_file)]
        return [cmd]

    def index_sequences(self):
        ann_file = Path(f'{self.index_path}.ann')
        if not ann_file.is_file():
            logger.warning("No %s file, the SAM header of SOAP will have no @SQ lines", ann_file)
            return None
        return index_sequence_lengths(ann_file)

    def create_custom_input_stream(self, stream):
        return SOAPOutput(self, stream)


class SOAPMapperProvider(MapperProvider):
    name = 'SOAP'
    default_version = '2.20'
    default_flavor = STANDARD_FLAVOR
    default_arguments = '-r 2 -l 28'
    EXECUTABLE = 'soap'
    INDEXER = '2bwt-builder'

    def indexer_executables(self, instance):
        return [self.INDEXER]

    def mapper_executable(self, instance):
        return self.EXECUTABLE

    def check_flavor(self, flavor):
        return flavor is None or normalize_flavor(flavor) == STANDARD_FLAVOR

    def read_binary_version(self, instance):
        def parse(lines):
            for line in lines:
                if line.strip().startswith('Version:'):
                    return line.split(':', 1)[1].strip()
            return None
        return self._read_version(instance, [], parse)

    def indexer_command(self, indexer, genome_file, indexer_arguments, threads):
        return [str(indexer), str(Path(genome_file).absolute())]

    def index_path(self, mapping):
        return Path(str(get_index_path(self.name, mapping.index_dir, '.index.amb')) + '.index')

    def map_se(self, mapping, input_file=None, stderr_file=None, log_file=None):
        soap_path = install(mapping.executor, self.EXECUTABLE)
        return SOAPProcess(mapping, soap_path, self.index_path(mapping), stderr_file, False, input_file)

    def map_pe(self, mapping, input_file1=None, input_file2=None, stderr_file=None, log_file=None):
        soap_path = install(mapping.executor, self.EXECUTABLE)
        return SOAPProcess(mapping, soap_path, self.index_path(mapping), stderr_file, True, input_file1, input_file2)


PROVIDERS = [
    BWAMapperProvider(),
    STARMapperProvider(),
    BowtieMapperProvider(),
    Bowtie2MapperProvider(),
    GSNAPMapperProvider(),
    SOAPMapperProvider(),
]


def get_provider(name):
    if name is None:
        return None
    for provider in PROVIDERS:
        if provider.name.lower() == name.strip().lower():
            return provider
    return None
