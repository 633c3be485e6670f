#!/usr/bin/env python
import sys

from setuptools import setup, find_packages

if len(sys.argv) == 1:
    sys.argv.append('install')

if sys.argv[1] == 'test':
    from subprocess import call
    sys.exit(call([sys.executable, '-m', 'pytest'] + sys.argv[2:]))

packages = find_packages(include=['cubeflow', 'cubeflow.*'])

# pip dependencies
install_requires = [
    'numpy', 'docutils', 'pylru',
]
extras_require = {
    'msgpack': ['msgpack'],
    'test': ['pytest'],
    }
extras_require['all'] = sum(extras_require.values(), [])
tests_require = ['pytest']

#sys.dont_write_bytecode = False
dist = setup(
    name='cubeflow',
    version='0.2',
    description='Dataflow engine for exploring spectroscopic data cubes',
    long_description_content_type="text/x-rst",
    long_description=open('README.rst').read(),
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Environment :: Console',
        'Intended Audience :: Science/Research',
        'Operating System :: OS Independent',
        'Programming Language :: Python',
        'Programming Language :: Python :: 3',
        'Topic :: Scientific/Engineering',
        'Topic :: Scientific/Engineering :: Astronomy',
    ],
    zip_safe=False,
    packages=packages,
    package_data={'cubeflow.astrored.templates': ['*.json']},
    install_requires=install_requires,
    extras_require=extras_require,
    tests_require=tests_require,
    )

# End of file
