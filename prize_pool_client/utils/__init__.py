# -*- coding: utf-8 -*-
"""
Utils Module

Contract list helpers, validation and concurrency helpers
"""
