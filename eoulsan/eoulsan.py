import argparse

from eoulsan.__init__ import __VERSION__, __STEPS__
from eoulsan.tools.common import ArgFormatter, find_step_module


def main():
    """eoulsan cli
    """
    parser = argparse.ArgumentParser(description='Eoulsan', formatter_class=ArgFormatter)
    parser.add_argument('-v', '--version', action='version', version=__VERSION__)
    subparsers = parser.add_subparsers(dest='subparser_assay')

    for step in __STEPS__:
        # import function and opts
        step_module = find_step_module(step)
        func = getattr(step_module, step)
        func_opts = getattr(step_module, f"get_opts_{step}")
        parser_step = subparsers.add_parser(step, description=f'{step.upper()} step of Eoulsan',
                                            formatter_class=ArgFormatter)
        func_opts(parser_step)
        parser_step.set_defaults(func=func)

    args = parser.parse_args()
    if len(args.__dict__) <= 1:
        # No arguments or subcommands were given.
        parser.print_help()
        parser.exit()
    else:
        args.func(args)

    return args


if __name__ == '__main__':
    main()
