import os
import time
import signal
import logging
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)

STDOUT_FILENAME = 'STDOUT'
STDERR_FILENAME = 'STDERR'
CMDLINE_FILENAME = 'CMDLINE'


class ITCommandResult():
    """
    result of a script of an integration test
    """
    def __init__(self, command_line, directory, desc, duration_max):
        self.command_line = command_line
        self.directory = Path(directory)
        self.desc = desc
        self.duration_max = duration_max
        self.exit_value = -1
        self.exception = None
        self.exception_message = ''
        self.error_file_on_process = None
        self.duration = 0.0
        self.interrupted = False

    def set_exception(self, exception, message=''):
        self.exception = exception
        self.exception_message = message

    @property
    def caught_exception(self):
        return self.exception is not None

    def stderr_message(self):
        if self.error_file_on_process is None or not self.error_file_on_process.is_file():
            return ''
        text = self.error_file_on_process.read_text(errors='replace')
        return f'\nSTDERR of the last command: {self.error_file_on_process}\n{text}'

    def report(self):
        msg = f'\nExecute {self.desc}:\n\tCommand line: {self.command_line}\n\tDirectory: {self.directory}'
        if self.interrupted:
            msg += f'\n\tInterrupted after {self.duration_max} minutes'
        else:
            msg += f'\n\tDuration: {self.duration:.3f} s\n\tExit value: {self.exit_value}'
        if self.caught_exception:
            msg += f'\n\tException: {self.exception_message}'
        return msg + '\n'


class ITCommandExecutor():
    """
    run the scripts of an integration test in the output directory
    """
    def __init__(self, test_conf, output_test_dir, environment, duration_max):
        self.test_conf = test_conf
        self.output_test_dir = Path(output_test_dir)
        self.environment = environment
        self.duration_max = duration_max
        self.command_line_file = self.output_test_dir/CMDLINE_FILENAME

    def execute_command(self, key, suffix, desc, is_application_cmd=False):
        """
        return None when no command is set for key
        """
        command_line = self.test_conf.get(key)
        if command_line is None or not command_line.strip():
            return None

        if is_application_cmd:
            self.command_line_file.write_text(command_line)

        stdout_file = self.output_test_dir/f'{STDOUT_FILENAME}{suffix}'
        stderr_file = self.output_test_dir/f'{STDERR_FILENAME}{suffix}'
        result = ITCommandResult(command_line, self.output_test_dir, desc, self.duration_max)
        logger.debug('%s: %s', desc, command_line)

        start = time.time()
        with open(stdout_file, 'w') as out, open(stderr_file, 'w') as err:
            try:
                process = subprocess.Popen(command_line, shell=True, cwd=self.output_test_dir,
                                           env=self.environment, stdout=out, stderr=err, start_new_session=True)
            except OSError as e:
                result.set_exception(e, f'\tCommand line: {command_line}\n\tDirectory: {self.output_test_dir}\n'
                                        f'\tMessage: {e}')
                return result
            try:
                result.exit_value = process.wait(timeout=self.duration_max * 60)
            except subprocess.TimeoutExpired as e:
                os.killpg(os.getpgid(process.pid), signal.SIGKILL)
                process.wait()
                result.interrupted = True
                result.set_exception(e, f'\tKill process.\n\tCommand line: {command_line}\n'
                                        f'\tDirectory: {self.output_test_dir}\n\tMessage: {e}')
                result.error_file_on_process = stderr_file
                result.duration = time.time() - start
                return result
        result.duration = time.time() - start

        if result.exit_value != 0:
            result.set_exception(RuntimeError(f'bad exit value: {result.exit_value}'),
                                 f'\tCommand line: {command_line}\n\tDirectory: {self.output_test_dir}\n'
                                 f'\tMessage: bad exit value: {result.exit_value}')
            result.error_file_on_process = stderr_file
        elif not is_application_cmd:
            stdout_file.unlink()
            stderr_file.unlink()

        return result
