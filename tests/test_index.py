import argparse
import io
import zipfile
from pathlib import Path

import pytest

from eoulsan.tools.common import EoulsanError
from eoulsan.mapping.executor import MapperError
from eoulsan.index import index as index_step


class FinishedResult():
    def __init__(self, output=b''):
        self.stdout = io.BytesIO(output)

    def wait_for(self):
        return 0


class BwaExecutor():
    """prints the bwa version and writes a fake .bwt file on indexing"""
    def __init__(self):
        self.commands = []

    def is_executable(self, name):
        return name == 'bwa'

    def install(self, name):
        return f'/opt/bin/{name}'

    def execute(self, command, execution_dir=None, stdout=False, stderr_file=None, redirect_stderr=False,
                files_used=()):
        self.commands.append(command)
        if command == ['/opt/bin/bwa']:
            return FinishedResult(b'\nProgram: bwa\nVersion: 0.7.17-r1188\n')
        genome = Path(command[-1])
        (Path(execution_dir)/f'{genome.name}.bwt').write_text('index')
        return FinishedResult(b'indexed\n')


def parse(*argv):
    parser = index_step.get_opts_index(argparse.ArgumentParser())
    return parser.parse_args(list(argv))


@pytest.fixture
def genome(tmp_path):
    path = tmp_path/'genome.fasta'
    path.write_text('>chr1\nACGTACGT\n')
    return path


def test_index_archive(tmp_path, genome, monkeypatch):
    executor = BwaExecutor()
    monkeypatch.setattr('eoulsan.mapping.mapper.new_executor', lambda docker_image=None, tmp_dir=None: executor)
    output = tmp_path/'out'/'bwa-index.zip'

    archive = index_step.index(parse('--genome', str(genome), '--mapper', 'bwa', '--tmpdir', str(tmp_path),
                                     '--output', str(output)))

    assert archive == output
    with zipfile.ZipFile(output) as z:
        assert z.namelist() == ['genome.fasta.bwt']
    assert (tmp_path/'out'/'bwa-index.out').read_text() == 'indexed\n'
    assert executor.commands[-1][:2] == ['/opt/bin/bwa', 'index']


def test_missing_genome():
    with pytest.raises(EoulsanError):
        index_step.index(parse('--mapper', 'bwa'))


def test_unknown_mapper(genome):
    with pytest.raises(MapperError):
        index_step.index(parse('--genome', str(genome), '--mapper', 'tophat'))
