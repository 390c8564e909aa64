"""
Training-plan scheduling and prorated billing for the gym CRM.

This package contains:
- Scheduling core: overlap gate, status, templates, renewal priority (`gymplan.scheduling`)
- First-month proration and statements (`gymplan.billing`)
- Drive share-link validation (`gymplan.drive`)
- Shared configuration and utilities (`gymplan.core`)
- Database and Supabase integration (`gymplan.db`)
- Telegram front-end and background jobs (`gymplan.bot`)
"""
