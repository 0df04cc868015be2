"""
Product review queue.

- Staff (admins and mentors) see non-WIP, unchecked products, oldest first
- "No replied" narrows the queue to products the reviewer has not commented on
- The summary keeps the oldest product per elapsed-days bucket (0..6, 7+)
"""
