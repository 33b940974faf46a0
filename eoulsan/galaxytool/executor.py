import os
import logging
import subprocess
from pathlib import Path

from eoulsan.tools.docker import build_docker_command, pull_image


logger = logging.getLogger(__name__)

DOCKER_INTERPRETER = 'docker'
DEFAULT_INTERPRETER = 'bash'
STDOUT_FILENAME = 'STDOUT'
STDERR_FILENAME = 'STDERR'


class ToolExecutorResult():
    def __init__(self, command_line, exit_value, stdout_file, stderr_file):
        self.command_line = command_line
        self.exit_value = exit_value
        self.stdout_file = stdout_file
        self.stderr_file = stderr_file

    @property
    def is_success(self):
        return self.exit_value == 0

    def __repr__(self):
        return f'ToolExecutorResult(exit_value={self.exit_value}, command_line={self.command_line})'


class ToolExecutor():
    """
    Run the command line of a Galaxy tool, locally or in a docker container.
    """
    def __init__(self, tool_info, command_line, output_dir, input_files=(), use_docker=True):
        self.tool_info = tool_info
        self.command_line = command_line
        self.output_dir = Path(output_dir)
        self.input_files = [Path(f) for f in input_files]
        self.use_docker = use_docker

    def interpreter(self):
        interpreters = [i for i in self.tool_info.interpreters if i and i != DOCKER_INTERPRETER]
        return interpreters[0] if interpreters else None

    def is_docker(self):
        return bool(self.use_docker and self.tool_info.docker_image)

    def create_command(self):
        interpreter = self.interpreter()
        command_line = f'{interpreter} {self.command_line}' if interpreter else self.command_line
        command = [DEFAULT_INTERPRETER, '-c', command_line]

        if not self.is_docker():
            return command

        mounts = [self.output_dir.absolute()] + [f.absolute().parent for f in self.input_files]
        return build_docker_command(self.tool_info.docker_image, ['sh', '-c', command_line], mounts=mounts,
                                    workdir=self.output_dir.absolute())

    def execute(self):
        self.output_dir.mkdir(parents=True, exist_ok=True)
        stdout_file = self.output_dir/STDOUT_FILENAME
        stderr_file = self.output_dir/STDERR_FILENAME

        if self.is_docker():
            pull_image(self.tool_info.docker_image)

        command = self.create_command()
        logger.info("Tool command line: %s", ' '.join(command))

        with open(stdout_file, 'w') as out, open(stderr_file, 'w') as err:
            exit_value = subprocess.call(command, stdout=out, stderr=err, cwd=str(self.output_dir),
                                         env=dict(os.environ))

        if exit_value != 0:
            logger.error("Tool %s exits with value %s, see %s", self.tool_info.tool_id, exit_value, stderr_file)
        return ToolExecutorResult(self.command_line, exit_value, stdout_file, stderr_file)
