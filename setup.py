import setuptools
from eoulsan.__init__ import __VERSION__, __STEPS__

with open("README.md", "r") as fh:
    long_description = fh.read()

with open('requirements.txt') as fp:
    install_requires = fp.read()

entrys = ['eoulsan=eoulsan.eoulsan:main',]
for assay in __STEPS__:
    entrys.append(f'eoulsan_{assay}=eoulsan.{assay}.{assay}:main')
entry_dict = {
        'console_scripts': entrys,
}


setuptools.setup(
    name="eoulsan",
    version=__VERSION__,
    author="wuqi",
    author_email="wuqi@singleronbio.com",
    description="Eoulsan: design files, Galaxy tools, read mappers and integration tests for NGS analysis",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=setuptools.find_packages(exclude=['tests', 'tests.*']),
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    python_requires='>=3.7',
    include_package_data=True,
    entry_points=entry_dict,
    install_requires=install_requires,
    extras_require={
        'test': ['pytest'],
    },
)
