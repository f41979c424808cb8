"""Historical Page Transcription.

Crops, deskews and binarizes photographed manuscript and printed pages,
then transcribes them with Tesseract, either as one block or as a stack of
overlapping single-line strips.
"""
