#!/usr/bin/python3

# Copyright (C) 2007 Google Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#      http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
This script can be used to create a source or binary distribution of the
feedmerge library and its merge.py tool. The output is put in dist/
"""

from setuptools import setup

from feedmerge.version import __version__ as VERSION

setup(
    version=VERSION,
    name="feedmerge",
    description="Merges General Transit Feed Specification feeds",
    long_description="This module provides a library for merging General "
    "Transit Feed Specification feeds, either the feeds of several agencies "
    "into one regional feed or two consecutive versions of one feed into a "
    "feed covering both periods. It includes the merge.py command line tool "
    "which also writes an HTML report of the merge.",
    platforms="OS Independent",
    license="Apache License, Version 2.0",
    packages=["feedmerge"],
    py_modules=["merge"],
    python_requires=">=3.7",
    extras_require={"test": ["pytest"]},
    zip_safe=False,
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Intended Audience :: Information Technology",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Topic :: Scientific/Engineering :: GIS",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
)
