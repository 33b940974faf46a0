import argparse
import sys
from pathlib import Path

from eoulsan.tools.common import *
from eoulsan.design.builder import DesignBuilder
from eoulsan.design.io import read_design, write_design
from eoulsan.design.utils import (check_samples_or_raise, obfuscate, read_and_check_design,
                                  replace_local_path_by_symlinks, show_design)


class Design_step(Step):
    """
    create, check, transform and show design files
    """
    def __init__(self, args):
        Step.__init__(self, args, display_title='Design')
        self.files = args.create
        self.input = get_config_value(args, self.config, 'input')
        self.output = get_config_value(args, self.config, 'output')
        self.symlinks_dir = get_config_value(args, self.config, 'symlinks_dir')
        self.paired_end = not args.single_end

    def load(self):
        if self.files:
            builder = DesignBuilder()
            builder.add_files(self.files)
            design = builder.get_design(self.paired_end)
            check_samples_or_raise(design)
            return design
        if self.input:
            if self.args.check:
                return read_and_check_design(self.input)
            return read_design(self.input)
        raise EoulsanError("No design to read, use --create or --input.")

    def run(self):
        design = self.load()

        if self.args.obfuscate:
            obfuscate(design, self.args.remove_replicate_info)

        if self.symlinks_dir:
            Path(self.symlinks_dir).mkdir(parents=True, exist_ok=True)
            replace_local_path_by_symlinks(design, self.symlinks_dir)

        if self.args.show:
            print(show_design(design))
            return design

        if self.output and Path(self.output).exists() and not self.args.force:
            raise EoulsanError(f"Output design file already exists: {self.output}")
        write_design(design, self.output)
        return design


@add_log
def design(args):
    step = Design_step(args)
    return step.run()


def get_opts_design(parser, sub_program=True):
    parser.add_argument('--create', help='Fastq, genome and annotation files used to create a new design.', nargs='+')
    parser.add_argument('--single_end', help='Create one sample per fastq file.', action='store_true')
    parser.add_argument('--input', help='Design file to read (version 1 or 2 format).')
    parser.add_argument('--check', help='Check the samples, genome and annotation of the design.', action='store_true')
    parser.add_argument('--obfuscate', help='Remove personal information from the design.', action='store_true')
    parser.add_argument('--remove_replicate_info', help='With --obfuscate, also remove condition, replicate '
                        'and reference information.', action='store_true')
    parser.add_argument('--symlinks_dir', help='Replace local files by symbolic links created in this directory.')
    parser.add_argument('--show', help='Print the design instead of writing it.', action='store_true')
    parser.add_argument('--output', help='Output design file. Standard output if not set.')
    parser.add_argument('--force', help='Overwrite the output design file.', action='store_true')
    if sub_program:
        parser = s_common(parser)
    return parser


def main():
    parser = argparse.ArgumentParser(description='Eoulsan design', formatter_class=ArgFormatter)
    parser = get_opts_design(parser)
    if len(sys.argv) <= 1:
        parser.print_help()
        parser.exit()
    args = parser.parse_args()
    design(args)


if __name__ == '__main__':
    main()
