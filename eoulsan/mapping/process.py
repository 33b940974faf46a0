import os
import uuid
import time
import queue
import shutil
import logging
import threading
from pathlib import Path

from eoulsan.mapping.executor import MapperError


logger = logging.getLogger(__name__)

QUEUE_SIZE = 1000
END_OF_QUEUE = None


def to_fastq(name, sequence, quality):
    return f'@{name}\n{sequence}\n+\n{quality}\n'


def create_named_pipe(path):
    path = Path(path)
    if path.exists():
        path.unlink()
    os.mkfifo(path)
    return path


class FastqWriterThread(threading.Thread):
    """
    Write fastq entries in a named pipe. Opening the pipe blocks until the mapper opens it,
    the mapper gets end of file when the writer is closed.
    """
    def __init__(self, pipe_file, name):
        threading.Thread.__init__(self, name=name, daemon=True)
        self.pipe_file = create_named_pipe(pipe_file)
        self.queue = queue.Queue(QUEUE_SIZE)
        self.exception = None
        self.closed = False
        self.start()

    def run(self):
        try:
            with open(self.pipe_file, 'w') as out:
                while True:
                    text = self.queue.get()
                    if text is END_OF_QUEUE:
                        break
                    out.write(text)
        except OSError as e:
            self.exception = e

    def write(self, text):
        if self.closed:
            raise MapperError(f"{self.name}: writer already closed")
        if self.exception is not None:
            raise MapperError(f"{self.name}: {self.exception}")
        self.queue.put(text)

    def close(self):
        if self.closed:
            return
        self.closed = True
        self.queue.put(END_OF_QUEUE)
        self.join()
        if self.exception is not None:
            raise MapperError(f"{self.name}: {self.exception}")


class FastqCopyThread(threading.Thread):
    """
    Write fastq entries in a regular file, then send the whole file in a named pipe once
    the writer is closed. The writes never wait for the reader of the pipe.
    """
    def __init__(self, pipe_file, copy_file, name):
        threading.Thread.__init__(self, name=name, daemon=True)
        self.pipe_file = create_named_pipe(pipe_file)
        self.copy_file = Path(copy_file)
        self.out = open(self.copy_file, 'w')
        self.copy_closed = threading.Event()
        self.exception = None
        self.closed = False
        self.start()

    def run(self):
        self.copy_closed.wait()
        try:
            with open(self.pipe_file, 'wb') as out, open(self.copy_file, 'rb') as fh:
                shutil.copyfileobj(fh, out)
        except OSError as e:
            self.exception = e

    def write(self, text):
        if self.closed:
            raise MapperError(f"{self.name}: writer already closed")
        self.out.write(text)

    def close(self):
        if self.closed:
            return
        self.closed = True
        try:
            self.out.close()
        finally:
            self.copy_closed.set()

    def stop(self):
        """
        end the thread after the reader of the pipe exited, the pipe may never have been opened
        """
        self.close()
        while self.is_alive():
            try:
                fd = os.open(self.pipe_file, os.O_RDONLY | os.O_NONBLOCK)
                os.close(fd)
            except FileNotFoundError:
                pass
            self.join(0.1)


class MapperOutput():
    """
    SAM output of the mapper. Closing it waits the end of the last command.
    """
    def __init__(self, mapper_process, stream):
        self.mapper_process = mapper_process
        self.stream = stream
        self.closed = False

    def read(self, size=-1):
        return self.stream.read(size)

    def readline(self):
        return self.stream.readline()

    def __iter__(self):
        return iter(self.stream.readline, b'')

    def close(self):
        if self.closed:
            return
        self.closed = True
        self.stream.close()
        exit_value = self.mapper_process.last_result.wait_for()
        if exit_value != 0:
            raise MapperError(f"Bad error result for {self.mapper_process.mapper_name} execution: {exit_value}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class MapperProcess():
    """
    Run the commands of a mapper. Reads are given as files or written as entries
    in named pipes.
    """
    def __init__(self, mapper_name, executor, tmp_dir, stderr_file, paired_end, input_file1=None,
                 input_file2=None):
        self.mapper_name = mapper_name
        self.executor = executor
        self.tmp_dir = Path(tmp_dir)
        self.stderr_file = stderr_file
        self.paired_end = paired_end
        self.uuid = str(uuid.uuid4())
        self.input_reads_count = 0
        self.files_to_remove = []
        self.process_results = []
        self.command_line = None
        self.stdout = None
        self.writer1 = None
        self.writer2 = None

        self.input_file_mode = input_file1 is not None
        if self.input_file_mode:
            if paired_end and input_file2 is None:
                raise ValueError("input_file2 cannot be None in paired-end mode")
            self.pipe_file1 = Path(input_file1).absolute()
            self.pipe_file2 = Path(input_file2).absolute() if input_file2 else None
        else:
            self.pipe_file1 = self.tmp_dir/f'mapper-inputfile1-{self.uuid}.fq'
            self.pipe_file2 = self.tmp_dir/f'mapper-inputfile2-{self.uuid}.fq'
            self.writer1 = FastqWriterThread(self.pipe_file1, f'{mapper_name} writer 1')
            self.add_files_to_remove(self.pipe_file1)
            if paired_end:
                self.writer2 = FastqWriterThread(self.pipe_file2, f'{mapper_name} writer 2')
                self.add_files_to_remove(self.pipe_file2)

        self.additional_init()

    def additional_init(self):
        pass

    def create_command_lines(self):
        raise NotImplementedError

    def execution_directory(self):
        return self.tmp_dir

    def create_custom_input_stream(self, stream):
        return stream

    def add_files_to_remove(self, *files):
        self.files_to_remove.extend(f for f in files if f is not None)

    @property
    def last_result(self):
        return self.process_results[-1]

    def start(self):
        commands = self.create_command_lines()
        self.command_line = ' ; '.join(' '.join(str(c) for c in cmd) for cmd in commands)
        logger.debug("%s command line: %s", self.mapper_name, self.command_line)

        files_used = [self.pipe_file1, self.pipe_file2]
        for i, cmd in enumerate(commands):
            last = i == len(commands) - 1
            result = self.executor.execute([str(c) for c in cmd], self.execution_directory(), last,
                                           self.stderr_file, False, files_used)
            self.process_results.append(result)
            if not last:
                time.sleep(1)

        self.stdout = MapperOutput(self, self.create_custom_input_stream(self.last_result.stdout))
        return self

    def _check_entry_mode(self, paired_end):
        if self.input_file_mode:
            raise RuntimeError("Cannot write entries when input files are used")
        if paired_end != self.paired_end:
            mode = 'paired-end' if self.paired_end else 'single-end'
            raise RuntimeError(f"Cannot use this method in {mode} mode")

    def write_entry(self, name1, sequence1, quality1, name2=None, sequence2=None, quality2=None):
        paired = name2 is not None
        self._check_entry_mode(paired)
        self.writer1.write(to_fastq(name1, sequence1, quality1))
        if paired:
            self.writer2.write(to_fastq(name2, sequence2, quality2))
        self.input_reads_count += 1

    def write_entry1(self, read):
        """
        read is a record with name, sequence and quality fields like pysam.FastxRecord
        """
        if self.input_file_mode:
            raise RuntimeError("Cannot write entries when input files are used")
        self.writer1.write(to_fastq(read.name, read.sequence, read.quality))
        self.input_reads_count += 1

    def write_entry2(self, read):
        self._check_entry_mode(True)
        self.writer2.write(to_fastq(read.name, read.sequence, read.quality))

    def close_writer1(self):
        if self.writer1 is not None:
            self.writer1.close()

    def close_writer2(self):
        if self.writer2 is not None:
            self.writer2.close()

    def close_entries_writer(self):
        self.close_writer1()
        self.close_writer2()

    def to_file(self, output_file):
        """
        copy the output of the mapper to a file in a thread, returns the thread
        """
        def copy():
            with open(output_file, 'wb') as out:
                shutil.copyfileobj(self.stdout.stream, out)

        thread = threading.Thread(target=copy, name=f'{self.mapper_name} output copy', daemon=True)
        thread.start()
        return thread

    def wait_for(self):
        try:
            for result in self.process_results:
                exit_value = result.wait_for()
                if exit_value != 0:
                    raise MapperError(f"Bad error result for {self.mapper_name} execution: {exit_value}")
        finally:
            self.remove_files()

    def remove_files(self):
        for f in self.files_to_remove:
            f = Path(f)
            if f.exists() or f.is_symlink():
                f.unlink()

    def __repr__(self):
        return f'MapperProcess(mapper={self.mapper_name}, paired_end={self.paired_end}, ' \
               f'command_line={self.command_line})'
