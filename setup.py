# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from setuptools import find_packages, setup

setup(
    name="ndinfer",
    version="0.1.0",
    description="Scoped-allocation inference predictor over a pluggable tensor engine",
    packages=find_packages(
        where="src",
        include=["ndinfer", "ndinfer.*"],
    ),
    package_dir={"": "src"},
    python_requires=">=3.10",
    install_requires=[
        "numpy",
        "ml_dtypes",
    ],
    extras_require={
        "torch": ["torch"],
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "ndinfer-benchmark=ndinfer.benchmark:main",
        ],
    },
    zip_safe=True,
)
