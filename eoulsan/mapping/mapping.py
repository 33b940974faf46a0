import argparse
import sys
import tempfile
import multiprocessing
from pathlib import Path
from tqdm import tqdm

from eoulsan.tools.common import *
from eoulsan.tools.fastq import FASTQ_SANGER, get_format_from_name, identify_fastq_file
from eoulsan.design.io import read_design
from eoulsan.mapping.mapper import Mapper


def get_fastq_format(sample, reads):
    name = sample.metadata.get(sample.metadata.FASTQ_FORMAT_KEY)
    if name:
        fastq_format = get_format_from_name(name)
        if fastq_format is None:
            raise EoulsanError(f"Unknown FASTQ format for sample {sample.id}: {name}")
        return fastq_format
    return identify_fastq_file(reads[0]) or FASTQ_SANGER


def resolve_reads(reads, design_dir):
    result = []
    for read in reads:
        path = Path(read)
        if not path.is_absolute() and design_dir is not None:
            path = design_dir/path
        result.append(str(path))
    return result


class Map_reads(Step):
    """
    map the reads of the samples of a design
    """
    def __init__(self, args):
        Step.__init__(self, args, display_title='Mapping')
        self.design_file = get_config_value(args, self.config, 'design') or self.config.get('design_file')
        if not self.design_file:
            raise EoulsanError("No design file set, use --design.")
        self.index = get_config_value(args, self.config, 'index')
        if not self.index:
            raise EoulsanError("No mapper index archive set, use --index.")

        self.mapper_name = get_config_value(args, self.config, 'mapper', 'bowtie2')
        self.mapper_version = get_config_value(args, self.config, 'mapper_version')
        self.mapper_flavor = get_config_value(args, self.config, 'mapper_flavor')
        self.mapper_arguments = get_config_value(args, self.config, 'mapper_arguments')
        self.docker_image = get_config_value(args, self.config, 'docker_image')
        self.threads = int(get_config_value(args, self.config, 'thread', 1))
        self.jobs = int(get_config_value(args, self.config, 'jobs', 1))
        self.multiple_instances = bool(get_config_value(args, self.config, 'multiple_instances', False))
        self.outdir = Path(get_config_value(args, self.config, 'outdir', '.'))
        self.tmpdir = get_config_value(args, self.config, 'tmpdir') or tempfile.gettempdir()
        self.index_dir = get_config_value(args, self.config, 'index_dir') or \
            str(self.outdir/f'{Path(self.index).name.rsplit(".", 1)[0]}-index')

    def options(self):
        return {
            'mapper': self.mapper_name,
            'version': self.mapper_version,
            'flavor': self.mapper_flavor,
            'arguments': self.mapper_arguments,
            'docker_image': self.docker_image,
            'threads': self.threads,
            'multiple_instances': self.multiple_instances,
            'index': self.index,
            'index_dir': self.index_dir,
            'tmpdir': self.tmpdir,
            'outdir': str(self.outdir),
        }

    def samples_params(self):
        design = read_design(self.design_file)
        design_dir = Path(self.design_file).absolute().parent
        options = self.options()
        param_list = []
        for sample in design.samples:
            reads = resolve_reads(sample.metadata.get_reads(), design_dir)
            if len(reads) not in (1, 2):
                raise EoulsanError(f"Sample {sample.id} must have 1 (single-end) or 2 (paired-end) "
                                   f"reads files, found: {len(reads)}")
            param_list.append((sample.id, reads, get_fastq_format(sample, reads).name, options))
        return param_list

    @add_log
    def run(self):
        self.outdir.mkdir(parents=True, exist_ok=True)
        param_list = self.samples_params()
        if not param_list:
            raise EoulsanError(f"No sample to map in design: {self.design_file}")

        # check the binaries and unzip the index once before the workers
        new_mapper_index(self.options())

        jobs = max(1, min(self.jobs, len(param_list)))
        with multiprocessing.Pool(jobs) as p:
            results = list(tqdm(p.imap(run, param_list), total=len(param_list), unit_scale=True, ncols=70,
                                file=sys.stdout, desc='Mapping reads '))
        return results


def new_mapper_index(options):
    mapper = Mapper.new_mapper(options['mapper'])
    instance = mapper.new_mapper_instance(options['version'], options['flavor'], options['docker_image'],
                                          options['tmpdir'])
    index = instance.new_mapper_index(options['index'], options['index_dir'])
    index.unzip()
    return mapper, index


@add_log
def run(params):
    sample_id, reads, fastq_format_name, options = params
    mapper, index = new_mapper_index(options)
    arguments = options['arguments'] if options['arguments'] is not None else mapper.default_arguments
    mapping = index.new_file_mapping(get_format_from_name(fastq_format_name), arguments, options['threads'],
                                     options['multiple_instances'])

    outdir = Path(options['outdir'])
    sam_file = outdir/f'{sample_id}.sam'
    err_file = outdir/f'{sample_id}.err'
    if len(reads) == 1:
        process = mapping.map_file_se(reads[0], stderr_file=err_file)
    else:
        process = mapping.map_file_pe(reads[0], reads[1], stderr_file=err_file)

    copy = process.to_file(sam_file)
    copy.join()
    process.wait_for()
    mapping.throw_mapping_exception()
    run.logger.info(f'{sample_id}: {process.input_reads_count} reads mapped with {mapper.name}, output {sam_file}')
    return str(sam_file)


@add_log
def mapping(args):
    step = Map_reads(args)
    return step.run()


def get_opts_mapping(parser, sub_program=True):
    parser.add_argument('--design', help='Design file of the samples to map.')
    parser.add_argument('--index', help='Zip archive of the mapper index, see the index step.')
    parser.add_argument('--index_dir', help='Directory where the index archive is unzipped.')
    parser.add_argument('--mapper', help='Mapper name: ' + ', '.join(Mapper.names()) + '.')
    parser.add_argument('--mapper_version', help='Version of the mapper.')
    parser.add_argument('--mapper_flavor', help='Flavor of the mapper.')
    parser.add_argument('--mapper_arguments', help='Arguments of the mapper, default arguments of the mapper if '
                        'not set.')
    parser.add_argument('--docker_image', help='Run the mapper in this docker image.')
    parser.add_argument('--thread', help='Number of threads of each mapper process.', type=int)
    parser.add_argument('--jobs', help='Number of samples mapped at the same time.', type=int)
    parser.add_argument('--multiple_instances', help='Allow several instances of the mapper to share the index '
                        'in memory.', action='store_true', default=None)
    parser.add_argument('--outdir', help='Output directory of the SAM files.')
    parser.add_argument('--tmpdir', help='Temporary directory.')
    if sub_program:
        parser = s_common(parser)
    return parser


def main():
    parser = argparse.ArgumentParser(description='Eoulsan mapping', formatter_class=ArgFormatter)
    parser = get_opts_mapping(parser)
    if len(sys.argv) <= 1:
        parser.print_help()
        parser.exit()
    args = parser.parse_args()
    mapping(args)


if __name__ == '__main__':
    main()
