#!/usr/bin/env python
#
# Copyright (c) 2026 Chunkline developers
#
# This software is distributed under the terms of the MIT License.
#

import os
from setuptools import setup

__version__ = None
VERSION_FILE = os.path.join(os.path.dirname(__file__), 'chunkline', '_version.py')
exec(open(VERSION_FILE).read())         # Adds __version__ to globals

with open('README.md', 'r') as fh:
    long_description = fh.read()

args = dict(
    name='chunkline',
    version=__version__,
    description='Arbitrary-size payloads over short rate-limited text command channels.',
    long_description=long_description,
    long_description_content_type='text/markdown',
    packages=[
        'chunkline',
        'chunkline.util',
        'chunkline.transport',
        'chunkline.transport.loopback',
        'chunkline.transport.serial',
        'chunkline.protocol',
        'chunkline.application',
    ],
    python_requires='>=3.8',
    install_requires=[
        'pyserial ~= 3.5',
    ],
    extras_require={
        'testing': [
            'pytest ~= 7.1',
            'pytest-asyncio >= 0.18',
            'coverage ~= 6.3',
        ],
    },
    entry_points={
        'console_scripts': [
            'chunkline = chunkline._cli:main',
        ],
    },
    author='Chunkline developers',
    license='MIT',
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Developers',
        'Topic :: Software Development :: Libraries',
        'Topic :: System :: Networking',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3',
    ],
    keywords='serial console command channel fragmentation deflate base64',
)

setup(**args)
