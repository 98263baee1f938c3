"""Optical recognition of notes on photographed staff paper.

This package turns a photograph or scan of a printed staff page into a
sequence of note events: letter name, octave, duration, synthetic measure
and position on the page. It includes binarization, staff geometry
estimation, note-head detection, pitch and duration resolution, and MIDI
and MusicXML export.

The recognition pipeline consists of:
1. Grayscale conversion and binarization
2. Staff spacing and five-line staff group estimation
3. Staff-line removal and note-head candidate detection
4. Deduplication and analytical filtering of candidates
5. Pitch and duration resolution in reading order

The image stages run on OpenCV when it is usable and on numpy otherwise;
one OpenCV failure switches the process to numpy for good.

Example:
    Basic usage through the processor API:

    >>> from score_recognition.image_io import load_image
    >>> from score_recognition.pipeline import ScoreProcessor
    >>>
    >>> image = load_image("sheet.jpg")
    >>> result = ScoreProcessor().process(image, title="Etude")
    >>> [n.pitch_name for n in result.notes]
"""
