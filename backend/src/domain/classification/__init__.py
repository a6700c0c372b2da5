"""Classification of decrypted webhook bodies"""

from .classifier import DocumentClassifier, ClassificationError

__all__ = ["DocumentClassifier", "ClassificationError"]
