import codecs
import os
import re

from setuptools import find_packages, setup


def read_file(filename, encoding='utf8'):
    """Read unicode from given file."""
    with codecs.open(filename, encoding=encoding) as fd:
        return fd.read()


here = os.path.abspath(os.path.dirname(__file__))

# read version number (and other metadata) from package init
init_fn = os.path.join(here, 'trustctl', '__init__.py')
meta = dict(re.findall(r"""__([a-z]+)__ = '([^']+)""", read_file(init_fn)))

readme = read_file(os.path.join(here, 'README.rst'))
version = meta['version']

install_requires = [
    'ConfigArgParse>=1.5.3',
    'configobj>=5.0.6',
    'cryptography>=42.0.0',  # Certificate.not_valid_after_utc
    'dnspython>=2.0.0',
    'importlib_metadata>=4.6; python_version < "3.10"',
    'josepy>=1.13.0',
    'pyparsing>=3.0.0',  # Located, snake_case API
    'pyrfc3339',
]

test_extras = [
    'pytest',
    'pytest-cov',
]

setup(
    name='trustctl',
    version=version,
    description="Certificate lifecycle automation agent",
    long_description=readme,
    license='Apache License 2.0',
    python_requires='>=3.9',
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Environment :: Console',
        'Intended Audience :: System Administrators',
        'License :: OSI Approved :: Apache Software License',
        'Operating System :: POSIX :: Linux',
        'Programming Language :: Python',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Internet :: WWW/HTTP',
        'Topic :: Security',
        'Topic :: System :: Installation/Setup',
        'Topic :: System :: Systems Administration',
        'Topic :: Utilities',
    ],

    packages=find_packages(include=['trustctl', 'trustctl.*']),
    include_package_data=True,

    install_requires=install_requires,
    extras_require={
        'test': test_extras,
    },

    entry_points={
        'console_scripts': [
            'trustctl = trustctl.main:main',
        ],
        'trustctl.dns_providers': [
            'rfc2136 = trustctl._internal.plugins.dns_rfc2136:Provider',
        ],
    },
)
