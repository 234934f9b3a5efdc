"""
OPC Tag Client - Setup Script
"""
from setuptools import setup, find_packages
import os

# Read long description from README
def read_long_description():
    here = os.path.abspath(os.path.dirname(__file__))
    try:
        with open(os.path.join(here, 'README.md'), encoding='utf-8') as f:
            return f.read()
    except FileNotFoundError:
        return "Resilient OPC UA tag client"

# Read requirements
def read_requirements():
    here = os.path.abspath(os.path.dirname(__file__))
    with open(os.path.join(here, 'requirements.txt'), encoding='utf-8') as f:
        requirements = []
        for line in f:
            line = line.strip()
            if line and not line.startswith('#'):
                requirements.append(line)
        return requirements

setup(
    name='opc-tag-client',
    version='1.0.0',
    description='Resilient OPC UA tag client with automatic reconnection and validated writes',
    long_description=read_long_description(),
    long_description_content_type='text/markdown',

    author='OPC Tag Client Contributors',

    license='MIT',

    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Developers',
        'Intended Audience :: Manufacturing',
        'Topic :: System :: Networking',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3',
        'Operating System :: OS Independent',
    ],

    keywords='opc ua opcua scada plc tags subscription industrial automation',

    packages=find_packages(where='src'),
    package_dir={'': 'src'},

    python_requires='>=3.8',

    install_requires=read_requirements(),

    extras_require={
        'dev': [
            'pytest>=7.4.0',
            'pytest-qt>=4.2.0',
            'black>=23.0.0',
            'flake8>=6.0.0',
            'mypy>=1.0.0',
        ],
    },

    include_package_data=True,
)
