"""
Posts domain package: request/response models and the credential check.
"""
