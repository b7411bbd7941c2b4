from setuptools import find_packages, setup


install_requires = [
    'humanfriendly',
    'texttable',
    'websocket-client',
]

setup(
    name='truenas_ctl',
    version='0.1.0',
    description='Command line management of TrueNAS datasets and snapshots',
    packages=find_packages(exclude=['tests', 'tests.*']),
    license='LGPL-3.0',
    platforms='any',
    python_requires='>=3.11',
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: System Administrators',
        'Programming Language :: Python',
        'Programming Language :: Python :: 3',
    ],
    install_requires=install_requires,
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'truenas_ctl = truenas_ctl.main:main',
        ],
    },
)
