from codecs import open
from os import path

from setuptools import find_packages, setup

here = path.abspath(path.dirname(__file__))

with open(path.join(here, "README.md"), encoding="utf-8") as f:
    long_description = f.read()

setup(
    name="signedfetch",
    version="0.1.0",
    packages=find_packages(exclude=["contrib", "docs", "tests*"]),
    package_data={"signedfetch": ["py.typed"]},
    description="OpenSocial signed fetch for gadget containers",
    long_description=long_description,
    long_description_content_type="text/markdown",
    python_requires=">=3.11",
    install_requires=[
        "cachetools",
        "cerberus",
        "cryptography>=43.0.1",
        "httpx>=0.23.0",
        "oauthlib",
        "prometheus-client",
        "PyYAML",
    ],
    extras_require={
        # pyjwt is needed by oauthlib's RSA verifier, which the tests use
        "tests": ["pyjwt", "pytest", "pytest-mock", "respx"],
    },
)
