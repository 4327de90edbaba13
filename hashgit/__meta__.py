# -*- coding: utf-8 -*-
"""Define project metadata
"""

__title__ = "hashgit"
__summary__ = "A content-addressable object store using git's loose-object format."
__url__ = ""

__version__ = "0.1.0"

__install_requires__ = [
    "fs>=2.4.16",
    # fs declares its namespace package through pkg_resources.
    "setuptools<81",
]
__tests_require__ = ["pytest", "tox"]

__author__ = "hashgit contributors"
__email__ = ""

__license__ = "MIT License"
