#!/usr/bin/env python3
"""
Setup script for blocksync

Installation:
    pip install .
    pip install -e .  # Development mode
    pip install -e .[dev]  # With test tooling

Distribution:
    python setup.py sdist bdist_wheel
"""

from setuptools import setup
import re

# Read version from blocksync/__init__.py
with open('blocksync/__init__.py', 'r', encoding='utf-8') as f:
    content = f.read()
    version_match = re.search(r'^__version__\s*=\s*[\'"]([^\'"]*)[\'"]', content, re.MULTILINE)
    if version_match:
        version = version_match.group(1)
    else:
        raise RuntimeError("Unable to find version string in blocksync/__init__.py")

# Read long description from README
with open('README.md', 'r', encoding='utf-8') as f:
    long_description = f.read()

setup(
    name='blocksync',
    version=version,
    description='Block-level remote file synchronization: rolling checksum signatures, deltas and patching.',
    long_description=long_description,
    long_description_content_type='text/markdown',
    packages=['blocksync'],
    python_requires='>=3.9',
    install_requires=[
        'xxhash>=3.0.0',
        'lz4>=4.0.0',
        'zstandard>=0.20.0',
    ],
    extras_require={
        'dev': [
            'pytest>=7.0.0',
            'pytest-cov>=4.0.0',
            'hypothesis>=6.0.0',
            'mypy>=1.0.0',
            'black>=23.0.0',
            'flake8>=6.0.0',
            'isort>=5.12.0',
        ],
    },
    entry_points={
        'console_scripts': [
            'blocksync=blocksync.cli:main',
        ],
    },
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Developers',
        'Intended Audience :: System Administrators',
        'Operating System :: OS Independent',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Software Development :: Libraries :: Python Modules',
        'Topic :: System :: Archiving :: Mirroring',
        'Topic :: Utilities',
    ],
    keywords='rsync sync delta rolling-checksum file-transfer',
    platforms=['any'],
    zip_safe=False,
)
