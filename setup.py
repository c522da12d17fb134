# SPDX-License-Identifier: LGPL-3.0-or-later
from setuptools import setup, find_packages

setup(
    name="mafailover",
    version="0.1.0",
    description="Nutanix Metro Availability planned failover orchestrator",
    python_requires=">=3.8",
    packages=find_packages(include=["mafailover", "mafailover.*"]),
    install_requires=[l.strip() for l in open("requirements.txt", encoding="utf-8") if l.strip() and not l.startswith("#")],
    extras_require={"test": ["pytest>=7.0"]},
    entry_points={"console_scripts": ["mafailover=mafailover.__main__:main"]},
)
