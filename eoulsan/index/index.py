import argparse
import sys
import tempfile
from pathlib import Path

from eoulsan.tools.common import *
from eoulsan.mapping.mapper import Mapper


class Genome_index(Step):
    """
    build the zipped index of a genome for a mapper
    """
    def __init__(self, args):
        Step.__init__(self, args, display_title='Index')
        self.genome = get_config_value(args, self.config, 'genome')
        if not self.genome:
            raise EoulsanError("No genome file set, use --genome.")
        self.mapper_name = get_config_value(args, self.config, 'mapper', 'bowtie2')
        self.mapper_version = get_config_value(args, self.config, 'mapper_version')
        self.mapper_flavor = get_config_value(args, self.config, 'mapper_flavor')
        self.indexer_arguments = get_config_value(args, self.config, 'indexer_arguments', '')
        self.docker_image = get_config_value(args, self.config, 'docker_image')
        self.threads = int(get_config_value(args, self.config, 'thread', 1))
        self.tmpdir = get_config_value(args, self.config, 'tmpdir') or tempfile.gettempdir()
        self.output = get_config_value(args, self.config, 'output') or \
            f'{self.mapper_name.lower()}-index.zip'

    @add_log
    def run(self):
        mapper = Mapper.new_mapper(self.mapper_name)
        instance = mapper.new_mapper_instance(self.mapper_version, self.mapper_flavor, self.docker_image,
                                              self.tmpdir)
        self.run.logger.info(f'{instance}, binary version: {instance.binary_version()}')
        archive = instance.make_archive_index(Path(self.genome), Path(self.output), self.indexer_arguments,
                                              self.threads)
        self.run.logger.info(f'{mapper.name} index of {self.genome} written in {archive}')
        return archive


@add_log
def index(args):
    step = Genome_index(args)
    return step.run()


def get_opts_index(parser, sub_program=True):
    parser.add_argument('--genome', help='Genome FASTA file, can be compressed.')
    parser.add_argument('--mapper', help='Mapper name: ' + ', '.join(Mapper.names()) + '.')
    parser.add_argument('--mapper_version', help='Version of the mapper.')
    parser.add_argument('--mapper_flavor', help='Flavor of the mapper.')
    parser.add_argument('--indexer_arguments', help='Additional arguments of the indexer.')
    parser.add_argument('--docker_image', help='Run the indexer in this docker image.')
    parser.add_argument('--thread', help='Number of threads.', type=int)
    parser.add_argument('--tmpdir', help='Temporary directory.')
    parser.add_argument('--output', help='Zip archive of the index.')
    if sub_program:
        parser = s_common(parser)
    return parser


def main():
    parser = argparse.ArgumentParser(description='Eoulsan index', formatter_class=ArgFormatter)
    parser = get_opts_index(parser)
    if len(sys.argv) <= 1:
        parser.print_help()
        parser.exit()
    args = parser.parse_args()
    index(args)


if __name__ == '__main__':
    main()
