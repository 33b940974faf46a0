import os
import uuid
import shlex
import shutil
import logging
import subprocess
from pathlib import Path

from eoulsan.tools.common import EoulsanError
from eoulsan.tools.docker import build_docker_command, pull_image


logger = logging.getLogger(__name__)


class MapperError(EoulsanError, IOError):
    pass


class ProcessResult():
    """
    running mapper command. stdout is a binary stream when it has been requested.
    """
    def __init__(self, process, stdout=None, on_exit=None):
        self.process = process
        self._stdout = stdout
        self.on_exit = on_exit
        self.exit_value = None

    @property
    def stdout(self):
        if self._stdout is None:
            return self.process.stdout
        if isinstance(self._stdout, (str, Path)):
            self._stdout = open(self._stdout, 'rb')
        return self._stdout

    def wait_for(self):
        if self.exit_value is None:
            self.exit_value = self.process.wait()
            if self.on_exit:
                self.on_exit()
        return self.exit_value


def _open_stderr(stderr_file):
    if stderr_file is None:
        return subprocess.DEVNULL
    return open(stderr_file, 'ab')


class DefaultMapperExecutor():
    """
    run the mapper binaries installed on the local system
    """
    def execute(self, command, execution_dir=None, stdout=False, stderr_file=None, redirect_stderr=False,
                files_used=()):
        logger.debug("Execute: %s in %s", ' '.join(command), execution_dir)
        err = _open_stderr(stderr_file)
        try:
            process = subprocess.Popen(
                command,
                cwd=str(execution_dir) if execution_dir else None,
                stdout=subprocess.PIPE if stdout else subprocess.DEVNULL,
                stderr=subprocess.STDOUT if redirect_stderr and stdout else err,
            )
        except OSError as e:
            raise MapperError(f"Unable to execute {command[0]}: {e}")
        finally:
            if err is not subprocess.DEVNULL:
                err.close()
        return ProcessResult(process)

    def is_executable(self, name):
        return shutil.which(name) is not None

    def install(self, name):
        path = shutil.which(name)
        if path is None:
            raise MapperError(f"Unable to find executable: {name}")
        return path

    def __repr__(self):
        return 'DefaultMapperExecutor()'


class DockerMapperExecutor():
    """
    run the mapper binaries in a docker container
    """
    def __init__(self, image, tmp_dir):
        if not image:
            raise ValueError("docker image cannot be empty")
        self.image = image
        self.tmp_dir = Path(tmp_dir).absolute()
        self.image_pulled = False

    def _pull(self):
        if not self.image_pulled:
            pull_image(self.image)
            self.image_pulled = True

    def mounts(self, execution_dir, stderr_file, files_used):
        mounts = [self.tmp_dir]
        if execution_dir:
            mounts.append(Path(execution_dir).absolute())
        if stderr_file:
            mounts.append(Path(stderr_file).absolute().parent)
        for f in files_used:
            if f:
                mounts.append(Path(f).absolute().parent)
        return mounts

    def create_command(self, command, execution_dir=None, stdout_file=None, stderr_file=None,
                       redirect_stderr=False, files_used=()):
        if stdout_file:
            shell_command = ' '.join(shlex.quote(str(c)) for c in command) + f' > {shlex.quote(str(stdout_file))}'
            if redirect_stderr:
                shell_command += ' 2>&1'
            command = ['sh', '-c', shell_command]
        workdir = Path(execution_dir).absolute() if execution_dir else self.tmp_dir
        return build_docker_command(self.image, command, mounts=self.mounts(execution_dir, stderr_file, files_used),
                                    workdir=workdir)

    def execute(self, command, execution_dir=None, stdout=False, stderr_file=None, redirect_stderr=False,
                files_used=()):
        self._pull()

        stdout_file = None
        if stdout:
            stdout_file = self.tmp_dir/f'stdout-{uuid.uuid4()}'
            os.mkfifo(stdout_file)

        docker_command = self.create_command(command, execution_dir, stdout_file, stderr_file, redirect_stderr,
                                             files_used)
        logger.debug("Execute: %s", ' '.join(docker_command))

        err = _open_stderr(stderr_file)
        try:
            process = subprocess.Popen(docker_command, stdout=subprocess.DEVNULL, stderr=err)
        finally:
            if err is not subprocess.DEVNULL:
                err.close()

        def remove_fifo():
            if stdout_file is not None and stdout_file.exists():
                stdout_file.unlink()

        return ProcessResult(process, stdout=stdout_file, on_exit=remove_fifo)

    def is_executable(self, name):
        self._pull()
        command = build_docker_command(self.image, ['which', name])
        return subprocess.call(command, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL) == 0

    def install(self, name):
        return name

    def __repr__(self):
        return f'DockerMapperExecutor(image={self.image})'


def new_executor(docker_image=None, tmp_dir=None):
    if docker_image:
        return DockerMapperExecutor(docker_image, tmp_dir)
    return DefaultMapperExecutor()
