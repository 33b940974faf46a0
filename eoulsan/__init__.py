import os

__VERSION__ = "2.5"
__version__ = __VERSION__


__STEPS__ = [
    'design',
    'galaxytool',
    'index',
    'mapping',
    'it'
    ]
__APP__ = 'eoulsan'

ROOT_PATH = os.path.dirname(__file__)
