from setuptools import setup, find_packages

setup(
    name='kubeboot',
    version='0.1.0',
    packages=find_packages(exclude=['kubeboot.tests']),
    include_package_data=True,
    package_data={
        'kubeboot.modules.kubeadm': ['templates/*.j2'],
    },
    install_requires=[
        'typer[all]',
        'rich',
        'pydantic>=2',
        'pyyaml',
        'jinja2',
        'semver>=3',
        'paramiko',
        'kubernetes',
        'tenacity',
        'python-dotenv',
        'requests',
        'urllib3',
    ],
    extras_require={
        'test': [
            'pytest',
        ],
    },
    entry_points={
        'console_scripts': [
            'kubeboot=kubeboot.cli:app'
        ]
    },
    author='Your Name',
    description='Bootstrap and maintain single-node Kubernetes clusters with kubeadm',
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: OS Independent',
    ],
    python_requires='>=3.8',
)
