from pathlib import Path

import pytest

from eoulsan.tools.fastq import FASTQ_SANGER


class FakeExecutor():
    """executor that finds every binary in /usr/bin and never runs anything"""
    def __init__(self, executable=True):
        self.executable = executable

    def install(self, name):
        return f'/usr/bin/{name}'

    def is_executable(self, name):
        return self.executable

    def execute(self, command, execution_dir=None, stdout=False, stderr_file=None, redirect_stderr=False,
                files_used=()):
        raise AssertionError(f"unexpected execution of {command}")


class FakeMapping():
    def __init__(self, tmp_dir, index_dir, fastq_format=FASTQ_SANGER, arguments=(), threads=1, version=None,
                 flavor=None, multiple_instances_enabled=False, executor=None, name='mapper'):
        self.name = name
        self.executor = executor or FakeExecutor()
        self.tmp_dir = Path(tmp_dir)
        self.index_dir = Path(index_dir)
        self.fastq_format = fastq_format
        self.mapper_arguments = list(arguments)
        self.threads = threads
        self.version = version
        self.flavor = flavor
        self.multiple_instances_enabled = multiple_instances_enabled


@pytest.fixture
def index_dir(tmp_path):
    path = tmp_path/'index'
    path.mkdir()
    return path


@pytest.fixture
def new_mapping(tmp_path, index_dir):
    def factory(**kwargs):
        return FakeMapping(tmp_path, index_dir, **kwargs)
    return factory


@pytest.fixture
def write_fastq(tmp_path):
    def factory(name, reads):
        path = tmp_path/name
        with open(path, 'w') as fh:
            for read_id, sequence, quality in reads:
                fh.write(f'@{read_id}\n{sequence}\n+\n{quality}\n')
        return path
    return factory
