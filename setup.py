from setuptools import setup, find_packages

with open('README.rst', 'r', encoding='utf-8') as f:
    long_description = f.read()

setup(
    name='minecontrol',

    version='0.1',

    description='Control a Minecraft server over RCON from the command line '
                'or HTTP',
    long_description=long_description,

    url='https://github.com/joshproehl/minecontrol',

    license='MIT',

    classifiers=[
        'Development Status :: 3 - Alpha',

        'License :: OSI Approved :: MIT License',

        'Programming Language :: Python :: 3',

        'Topic :: Games/Entertainment',
        'Topic :: System :: Systems Administration',
    ],

    keywords='minecraft rcon',

    packages=find_packages(exclude=['tests']),

    package_data={
        'minecontrol': ['gui/*'],
    },

    install_requires=['Flask', 'PyYAML'],

    extras_require={
        'test': ['pytest'],
    },

    entry_points={
        'console_scripts': [
            'minecontrol = minecontrol.cli:main',
        ],
    },
)
