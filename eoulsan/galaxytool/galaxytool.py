import argparse
import sys
import tempfile
from pathlib import Path

from eoulsan.tools.common import *
from eoulsan.galaxytool.interpreter import GalaxyToolInterpreter


def parse_key_values(values, option):
    result = {}
    for value in values or []:
        if '=' not in value:
            raise EoulsanError(f"Invalid {option} value, expected name=value: {value}")
        key, v = value.split('=', 1)
        result[key.strip()] = v.strip()
    return result


class Galaxy_tool(Step):
    """
    run a Galaxy tool
    """
    def __init__(self, args):
        Step.__init__(self, args, display_title='Galaxy tool')
        self.tool_xml = get_config_value(args, self.config, 'tool_xml')
        if not self.tool_xml:
            raise EoulsanError("No Galaxy tool XML file set, use --tool_xml.")

        tool_config = self.config.get('galaxytool', {}) or {}
        self.parameters = dict(tool_config.get('parameters', {}) or {})
        self.parameters.update(parse_key_values(args.param, '--param'))
        self.inputs = dict(tool_config.get('inputs', {}) or {})
        self.inputs.update(parse_key_values(args.input, '--input'))
        self.outputs = dict(tool_config.get('outputs', {}) or {})
        self.outputs.update(parse_key_values(args.output, '--output'))

        self.threads = int(get_config_value(args, self.config, 'thread', 1))
        self.outdir = Path(get_config_value(args, self.config, 'outdir', '.'))
        self.tmpdir = get_config_value(args, self.config, 'tmpdir') or tempfile.gettempdir()

    @add_log
    def run(self):
        interpreter = GalaxyToolInterpreter(self.tool_xml)
        interpreter.configure(self.parameters)

        if self.args.dry_run:
            command_line = interpreter.render_command(self.inputs, self.outputs, self.tmpdir, self.threads)
            print(command_line)
            return command_line

        result = interpreter.execute(self.inputs, self.outputs, self.tmpdir, self.threads, output_dir=self.outdir,
                                     use_docker=not self.args.no_docker)
        if not result.is_success:
            raise EoulsanError(f"Fail of the Galaxy tool {interpreter.tool_info.tool_id}, "
                               f"exit value: {result.exit_value}, command line: {result.command_line}")
        return result


@add_log
def galaxytool(args):
    step = Galaxy_tool(args)
    return step.run()


def get_opts_galaxytool(parser, sub_program=True):
    parser.add_argument('--tool_xml', help='Galaxy tool XML file.')
    parser.add_argument('--param', help='Tool parameter, as name=value.', action='append')
    parser.add_argument('--input', help='Input file of the tool, as name=path.', action='append')
    parser.add_argument('--output', help='Output file of the tool, as name=path.', action='append')
    parser.add_argument('--thread', help='Number of threads.', type=int)
    parser.add_argument('--outdir', help='Directory of the STDOUT and STDERR files.')
    parser.add_argument('--tmpdir', help='Temporary directory.')
    parser.add_argument('--no_docker', help='Do not use the docker image of the tool.', action='store_true')
    parser.add_argument('--dry_run', help='Only print the command line of the tool.', action='store_true')
    if sub_program:
        parser = s_common(parser)
    return parser


def main():
    parser = argparse.ArgumentParser(description='Eoulsan Galaxy tool', formatter_class=ArgFormatter)
    parser = get_opts_galaxytool(parser)
    if len(sys.argv) <= 1:
        parser.print_help()
        parser.exit()
    args = parser.parse_args()
    galaxytool(args)


if __name__ == '__main__':
    main()
