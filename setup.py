#!/usr/bin/python3
# Setup file for gitplumb
# Copyright (C) 2008-2022 Jelmer Vernooĳ <jelmer@jelmer.uk>
# SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-or-later

from setuptools import setup

tests_require = ["pytest"]


setup(
    name="gitplumb",
    version="0.1.0",
    description="Git object store and smart HTTP clone client",
    license="Apache-2.0 OR GPL-2.0-or-later",
    python_requires=">=3.10",
    packages=["gitplumb"],
    package_data={"": ["py.typed"]},
    install_requires=["urllib3>=2"],
    extras_require={"tests": tests_require},
    entry_points={
        "console_scripts": ["gitplumb=gitplumb.cli:_main"],
    },
)
