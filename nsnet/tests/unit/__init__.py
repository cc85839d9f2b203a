import unittest


class NsnetTest(unittest.TestCase):
    pass
