"""MediLens: prescription and lab report analysis API."""
