# Configuration file for the Sphinx documentation builder.

import os
import sys
sys.path.insert(0, os.path.abspath('../../src'))

project = 'smartsensors'
copyright = '2026, smartsensors developers'
author = 'smartsensors developers'
release = '0.1.0'

extensions = [
    'sphinx.ext.autodoc',
    'sphinx.ext.napoleon',
    'sphinx.ext.viewcode',
    'sphinx_autodoc_typehints',
    'myst_parser',
]

# device and GUI libraries are not needed to build the API docs
autodoc_mock_imports = [
    'serial',
    'sounddevice',
    'pyfirmata2',
    'torch',
    'PyQt5',
    'pyqtgraph',
]

templates_path = ['_templates']
exclude_patterns = []

html_theme = 'alabaster'
html_static_path = ['_static']

autodoc_member_order = 'bysource'
