"""
Sessions Domain

Booking, cancellation and completion of tutoring sessions between a learner
and a speaker. Booking checks speaker availability and slot conflicts, then
creates the Google Calendar event with a Meet link before the session row is
committed.
"""
