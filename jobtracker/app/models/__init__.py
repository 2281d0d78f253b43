from jobtracker.app.models.user import User
from jobtracker.app.models.resume import Resume, ResumeSource
from jobtracker.app.models.job_application import JobApplication
