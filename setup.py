#!/usr/bin/env python

# SPDX-FileCopyrightText: 2021 Rose Davidson <rose@metaclassical.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later

# -*- encoding: utf-8 -*-

from setuptools import find_packages
from setuptools import setup

setup(
    name="keyprobe",
    version="0.0.0",
    license="GPL-3.0-or-later",
    description="Keyboard event diagnostics: polling, chatter, stuck keys, rollover and more",
    long_description="TODO",
    author="Rose Davidson",
    author_email="rose@metaclassical.com",
    packages=find_packages("src"),
    package_dir={"": "src"},
    include_package_data=True,
    zip_safe=False,
    classifiers=[
        # complete classifier list: http://pypi.python.org/pypi?%3Aaction=list_classifiers
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: GNU General Public License v3 or later (GPLv3+)",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3 :: Only",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: Implementation :: CPython",
        "Topic :: System :: Hardware",
    ],
    keywords=["keyboard", "diagnostics", "evdev"],
    python_requires=">=3.11",
    install_requires=[
        "cattrs>=23.1",
        "msgspec",
        "outcome>=1.2.0",
        "python-dateutil>=2.8.1",
        "trio>=0.22.0",
        "trio-util>=0.7.0",
    ],
    extras_require={
        "test": ["pytest>=6.2.4", "pytest-trio>=0.8.0"],
    },
    entry_points={
        "console_scripts": [
            "keyprobe-replay = keyprobe.scripts:replay_cli",
        ],
    },
    setup_requires=[
        "setuptools>=30.3.0",
        "wheel",
    ],
)
