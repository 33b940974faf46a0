import os
import fcntl
import shutil
import logging
import tempfile
import threading
import zipfile
from pathlib import Path

import pysam
from xopen import xopen

from eoulsan.__init__ import __APP__
from eoulsan.tools.common import get_compression_extension, remove_compression_extension
from eoulsan.mapping.executor import MapperError, new_executor
from eoulsan.mapping.providers import PROVIDERS, arguments_as_list, get_provider, install


logger = logging.getLogger(__name__)


class Mapper():
    """
    reads mapper, the commands are created by its provider
    """
    def __init__(self, provider):
        self.provider = provider

    @staticmethod
    def new_mapper(name):
        provider = get_provider(name)
        if provider is None:
            raise MapperError(f"Unknown mapper: {name}")
        return Mapper(provider)

    @staticmethod
    def names():
        return [provider.name for provider in PROVIDERS]

    @property
    def name(self):
        return self.provider.name

    @property
    def default_version(self):
        return self.provider.default_version

    @property
    def default_flavor(self):
        return self.provider.default_flavor

    @property
    def default_arguments(self):
        return self.provider.default_arguments

    def new_mapper_instance(self, version=None, flavor=None, docker_image=None, tmp_dir=None, executor=None):
        tmp_dir = tmp_dir or tempfile.gettempdir()
        if executor is None:
            executor = new_executor(docker_image, tmp_dir)
        return MapperInstance(self, executor, version or self.default_version, flavor or self.default_flavor,
                              tmp_dir)

    def __repr__(self):
        return f'Mapper(name={self.name})'


class MapperInstance():
    """
    a mapper with a version, a flavor and an executor. The binaries are checked at creation.
    """
    def __init__(self, mapper, executor, version, flavor, tmp_dir):
        if mapper is None:
            raise ValueError("mapper cannot be None")
        if executor is None:
            raise ValueError("executor cannot be None")
        if tmp_dir is None:
            raise ValueError("tmp_dir cannot be None")
        self.mapper = mapper
        self.executor = executor
        self.version = version
        self.flavor = flavor
        self.tmp_dir = Path(tmp_dir)
        logger.debug("Use executor: %s", executor)
        self.check_mapper_binaries()

    @property
    def name(self):
        return self.mapper.name

    @property
    def provider(self):
        return self.mapper.provider

    def _not_found_error(self):
        flavor = self.flavor if self.flavor is not None else 'not defined'
        return MapperError(f"Unable to find mapper {self.name} version {self.version} (flavor: {flavor})")

    def check_mapper_binaries(self):
        indexers = self.provider.indexer_executables(self)
        if not indexers or not all(self.executor.is_executable(i) for i in indexers):
            raise self._not_found_error()
        if not self.executor.is_executable(self.provider.mapper_executable(self)):
            raise self._not_found_error()
        if not self.provider.check_flavor(self.flavor):
            raise self._not_found_error()

    def binary_version(self):
        return self.provider.read_binary_version(self)

    def install_indexer(self):
        result = None
        for indexer in self.provider.indexer_executables(self):
            result = install(self.executor, indexer)
        if result is None:
            raise MapperError(f"No indexer executable found for mapper: {self.name}")
        return result

    def make_archive_index(self, genome_file, archive_file, indexer_arguments=None, threads=1):
        """
        compute the index of the genome and zip it in archive_file
        """
        logger.info("Start computing %s index for %s", self.name, genome_file)
        archive_file = Path(archive_file)
        archive_file.parent.mkdir(parents=True, exist_ok=True)
        index_dir = Path(tempfile.mkdtemp(prefix=f'{__APP__}-{self.name.lower()}-genomeindexdir-', dir=self.tmp_dir))
        try:
            genome = uncompress_genome_if_necessary(Path(genome_file), index_dir)
            basename = archive_file.name.rsplit('.', 1)[0]
            self.compute_index(genome, index_dir, arguments_as_list(indexer_arguments), threads,
                               archive_file.parent/f'{basename}.out', archive_file.parent/f'{basename}.err')
            create_zip(index_dir, archive_file, self.provider.compress_index)
        finally:
            shutil.rmtree(index_dir, ignore_errors=True)
        logger.info("End computing %s index", self.name)
        return archive_file

    def compute_index(self, genome_file, output_dir, indexer_arguments, threads, stdout_file, stderr_file):
        indexer = self.install_indexer()
        output_dir.mkdir(parents=True, exist_ok=True)

        tmp_genome_file = output_dir/genome_file.name
        if genome_file.absolute() != tmp_genome_file.absolute():
            os.symlink(genome_file.absolute(), tmp_genome_file)

        cmd = self.provider.indexer_command(indexer, tmp_genome_file, indexer_arguments, threads)
        logger.debug(' '.join(cmd))
        result = self.executor.execute(cmd, output_dir, True, stderr_file, False, [genome_file, tmp_genome_file])
        with open(stdout_file, 'wb') as out:
            shutil.copyfileobj(result.stdout, out)
        exit_value = result.wait_for()
        if exit_value != 0:
            raise MapperError(f"Bad error result for index creation execution: {exit_value}")

        tmp_genome_file.unlink()

    def new_mapper_index(self, archive_file, index_dir):
        return MapperIndex(self, archive_file, index_dir)

    def __repr__(self):
        return f'MapperInstance(name={self.name}, version={self.version}, flavor={self.flavor}, ' \
               f'executor={self.executor})'


def uncompress_genome_if_necessary(genome_file, output_dir):
    if not get_compression_extension(genome_file.name):
        return genome_file
    uncompressed = output_dir/remove_compression_extension(genome_file.name)
    logger.debug("Uncompress genome %s to %s", genome_file, uncompressed)
    with xopen(genome_file, 'rb') as fin, open(uncompressed, 'wb') as fout:
        shutil.copyfileobj(fin, fout)
    return uncompressed


def create_zip(directory, archive_file, compress=True):
    compression = zipfile.ZIP_DEFLATED if compress else zipfile.ZIP_STORED
    directory = Path(directory)
    with zipfile.ZipFile(archive_file, 'w', compression) as z:
        for f in sorted(directory.rglob('*')):
            if f.is_file() and not f.is_symlink():
                z.write(f, f.relative_to(directory))


class MapperIndex():
    """
    zipped index of a mapper, unzipped once in index_dir
    """
    def __init__(self, mapper_instance, archive_file, index_dir):
        if mapper_instance is None or archive_file is None or index_dir is None:
            raise ValueError("mapper_instance, archive_file and index_dir cannot be None")
        self.mapper_instance = mapper_instance
        self.archive_file = Path(archive_file)
        self.index_dir = Path(index_dir)
        self.unzipped = False
        self.lock = threading.Lock()

    @property
    def mapper_name(self):
        return self.mapper_instance.name

    def unzip(self):
        with self.lock:
            if self.unzipped:
                return
            lock_file = self.index_dir.absolute().parent/f'{self.index_dir.name}.lock'
            with open(lock_file, 'w') as lock_fh:
                fcntl.flock(lock_fh, fcntl.LOCK_EX)
                try:
                    if not self.index_dir.exists():
                        self._extract()
                finally:
                    fcntl.flock(lock_fh, fcntl.LOCK_UN)
            if lock_file.exists():
                lock_file.unlink()
            if not self.index_dir.is_dir():
                raise MapperError(f"{self.mapper_name} index directory not found: {self.index_dir}")
            self.unzipped = True

    def _extract(self):
        """
        the archive is extracted in a temporary directory renamed to index_dir when complete
        """
        logger.debug("Unzip %s in %s", self.archive_file, self.index_dir)
        tmp_dir = Path(tempfile.mkdtemp(prefix=f'{self.index_dir.name}.', suffix='.tmp',
                                        dir=self.index_dir.absolute().parent))
        try:
            with zipfile.ZipFile(self.archive_file) as z:
                z.extractall(tmp_dir)
            os.rename(tmp_dir, self.index_dir)
        except zipfile.BadZipFile as e:
            raise MapperError(f"Invalid {self.mapper_name} index archive {self.archive_file}: {e}")
        finally:
            if tmp_dir.exists():
                shutil.rmtree(tmp_dir, ignore_errors=True)

    def new_entry_mapping(self, fastq_format, mapper_arguments=None, threads=1, multiple_instances_enabled=False):
        self.unzip()
        return EntryMapping(self, fastq_format, arguments_as_list(mapper_arguments), threads,
                            multiple_instances_enabled)

    def new_file_mapping(self, fastq_format, mapper_arguments=None, threads=1, multiple_instances_enabled=False):
        self.unzip()
        return FileMapping(self, fastq_format, arguments_as_list(mapper_arguments), threads,
                           multiple_instances_enabled)


class EntryMapping():
    """
    Mapping of reads written as entries in the mapper process.
    """
    def __init__(self, mapper_index, fastq_format, mapper_arguments, threads=1, multiple_instances_enabled=False):
        if mapper_index is None:
            raise ValueError("mapper_index cannot be None")
        if fastq_format is None:
            raise ValueError("fastq_format cannot be None")
        self.mapper_index = mapper_index
        self.fastq_format = fastq_format
        self.mapper_arguments = list(mapper_arguments)
        self.multiple_instances_enabled = bool(self.provider.multiple_instances_allowed
                                               and multiple_instances_enabled)
        self.threads = threads if threads > 1 and not self.multiple_instances_enabled else 1

    @property
    def mapper_instance(self):
        return self.mapper_index.mapper_instance

    @property
    def provider(self):
        return self.mapper_instance.provider

    @property
    def name(self):
        return self.mapper_instance.name

    @property
    def version(self):
        return self.mapper_instance.version

    @property
    def flavor(self):
        return self.mapper_instance.flavor

    @property
    def executor(self):
        return self.mapper_instance.executor

    @property
    def tmp_dir(self):
        return self.mapper_instance.tmp_dir

    @property
    def index_dir(self):
        return self.mapper_index.index_dir

    def map_se(self, stderr_file=None, log_file=None):
        logger.debug("Mapping with %s in single-end mode", self.name)
        return self.provider.map_se(self, None, stderr_file, log_file).start()

    def map_pe(self, stderr_file=None, log_file=None):
        logger.debug("Mapping with %s in paired-end mode", self.name)
        return self.provider.map_pe(self, None, None, stderr_file, log_file).start()


class FileMapping(EntryMapping):
    """
    Mapping of FASTQ files, the reads are written in the mapper process by threads.
    """
    def __init__(self, *args, **kwargs):
        EntryMapping.__init__(self, *args, **kwargs)
        self.mapping_exception = None

    def throw_mapping_exception(self):
        if self.mapping_exception is not None:
            raise self.mapping_exception

    def _write_entries(self, reads_file, write, close, name):
        def run():
            try:
                with pysam.FastxFile(str(reads_file)) as fh:
                    for read in fh:
                        write(read)
            except (OSError, ValueError, MapperError) as e:
                self.mapping_exception = MapperError(f"Error while reading {reads_file}: {e}")
            finally:
                close()

        thread = threading.Thread(target=run, name=name, daemon=True)
        thread.start()
        return thread

    @staticmethod
    def _check_file(reads_file, name):
        if reads_file is None:
            raise ValueError(f"{name} is None")
        if not Path(reads_file).is_file():
            raise MapperError(f"{name} not exits or is not a standard file: {reads_file}")

    def map_file_se(self, reads_file, stderr_file=None, log_file=None):
        self._check_file(reads_file, 'reads_file')
        logger.debug("FASTQ file to map: %s", reads_file)
        process = EntryMapping.map_se(self, stderr_file, log_file)
        self._write_entries(reads_file, process.write_entry1, process.close_writer1,
                            'Mapper write first pair entries')
        return process

    def map_file_pe(self, reads_file1, reads_file2, stderr_file=None, log_file=None):
        self._check_file(reads_file1, 'reads_file1')
        self._check_file(reads_file2, 'reads_file2')
        logger.debug("FASTQ files to map: %s %s", reads_file1, reads_file2)
        process = EntryMapping.map_pe(self, stderr_file, log_file)
        self._write_entries(reads_file1, process.write_entry1, process.close_writer1,
                            'Mapper write first pair entries')
        self._write_entries(reads_file2, process.write_entry2, process.close_writer2,
                            'Mapper write second pair entries')
        return process

    def map_se(self, stderr_file=None, log_file=None):
        raise RuntimeError("Use map_file_se with a FileMapping")

    def map_pe(self, stderr_file=None, log_file=None):
        raise RuntimeError("Use map_file_pe with a FileMapping")
