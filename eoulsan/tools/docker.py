import os
import logging
import subprocess
from tenacity import *

from eoulsan.tools.common import EoulsanError


logger = logging.getLogger(__name__)

PULL_ATTEMPTS = 3


def check_return_info(return_info):
    """
    check fun return
    """
    if return_info > 0:
        return True
    else:
        return False


def image_exists(image):
    return subprocess.call(['docker', 'image', 'inspect', image],
                           stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL) == 0


@retry(retry=retry_if_result(check_return_info), stop=stop_after_attempt(PULL_ATTEMPTS), wait=wait_fixed(2))
def _pull(image):
    logger.info("Pull docker image: %s", image)
    return subprocess.call(['docker', 'pull', image], stdout=subprocess.DEVNULL)


def pull_image(image):
    """
    Pull the image if it is not available locally.
    """
    if image_exists(image):
        return
    try:
        _pull(image)
    except RetryError:
        raise EoulsanError(f"Unable to pull docker image {image} after {PULL_ATTEMPTS} attempts")


def current_user():
    return f'{os.getuid()}:{os.getgid()}'


def build_docker_command(image, command, mounts=(), workdir=None, user=None, env=None):
    """
    Wrap a command in a docker run command. Every mounted directory is
    mounted at the same path inside the container.
    """
    cmd = ['docker', 'run', '--rm', '--user', user or current_user()]
    for key, value in (env or {}).items():
        cmd.extend(['-e', f'{key}={value}'])
    for mount in sorted(set(str(m) for m in mounts if m)):
        cmd.extend(['-v', f'{mount}:{mount}'])
    if workdir:
        cmd.extend(['-w', str(workdir)])
    cmd.append(image)
    cmd.extend(command)
    return cmd
