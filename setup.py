# coding=utf-8
from setuptools import setup

test_requirements = [
    "black>=19.10b0",
    "flake8>=3.8.3",
    "flake8-debugger>=3.2.1",
    "pytest>=5.4.3",
    "pytest-cov>=2.9.0",
]

dev_requirements = [
    *test_requirements,
    "bump2version>=1.0.1",
    "coverage>=5.1",
    "tox>=3.15.2",
    "twine>=3.1.1",
    "wheel>=0.34.2",
]

requirements = ["webcolors"]


extra_requirements = {
    "test": test_requirements,
    "dev": dev_requirements,
    "all": [
        *requirements,
        *dev_requirements,
    ],
}


setup(
    name="homectl",
    packages=["homectl"],
    version="0.1.0",
    description="Control LEDENET (Magic Home) Wi-Fi LED controllers on the LAN",
    license="LGPLv3+",
    include_package_data=True,
    package_data={"homectl": ["py.typed"]},
    keywords=[
        "homectl",
        "ledenet",
        "magic home",
        "light",
    ],
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: "
        + "GNU Lesser General Public License v3 or later (LGPLv3+)",
        "Operating System :: OS Independent",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Home Automation",
    ],
    python_requires=">=3.9",
    tests_require=test_requirements,
    extras_require=extra_requirements,
    entry_points={"console_scripts": ["homectl = homectl.cli:main"]},
    install_requires=requirements,
)
