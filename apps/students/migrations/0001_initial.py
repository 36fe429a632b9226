# apps/students/migrations/0001_initial.py

from django.db import migrations, models
import django.db.models.deletion
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('core', '0001_initial'),
        ('academics', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Student',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(db_index=True, help_text="When this record was created (in school's operational timezone)", verbose_name='Created At')),
                ('updated_at', models.DateTimeField(db_index=True, help_text="When this record was last updated (in school's operational timezone)", verbose_name='Updated At')),
                ('created_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who created this record', max_length=50, null=True, verbose_name='Created By ID')),
                ('updated_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who last updated this record', max_length=50, null=True, verbose_name='Updated By ID')),
                ('created_from_ip', models.GenericIPAddressField(blank=True, null=True, verbose_name='Created From IP')),
                ('change_reason', models.CharField(blank=True, help_text='Explanation for why this change was made', max_length=255, null=True, verbose_name='Change Reason')),
                ('admission_number', models.CharField(max_length=30, verbose_name='Admission Number')),
                ('first_name', models.CharField(max_length=100, verbose_name='First Name')),
                ('middle_name', models.CharField(blank=True, max_length=100, verbose_name='Middle Name')),
                ('last_name', models.CharField(max_length=100, verbose_name='Last Name')),
                ('date_admitted', models.DateField(blank=True, null=True, verbose_name='Date Admitted')),
                ('is_active', models.BooleanField(db_index=True, default=True, verbose_name='Is Active')),
                ('enrollment_status', models.CharField(choices=(('ACTIVE', 'Active'), ('SUSPENDED', 'Suspended'), ('GRADUATED', 'Graduated'), ('TRANSFERRED', 'Transferred'), ('WITHDRAWN', 'Withdrawn')), db_index=True, default='ACTIVE', max_length=20, verbose_name='Enrollment Status')),
                ('graduation_date', models.DateField(blank=True, null=True, verbose_name='Graduation Date')),
                ('current_class', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='students', to='academics.class', verbose_name='Current Class')),
                ('grade', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='students', to='academics.grade', verbose_name='Current Grade')),
                ('joined_academic_year', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='academics.academicyear', verbose_name='Joined Academic Year')),
                ('joined_term', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='academics.term', verbose_name='Joined Term')),
                ('school', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='students', to='core.school', verbose_name='School')),
            ],
            options={
                'verbose_name': 'Student',
                'verbose_name_plural': 'Students',
                'ordering': ['last_name', 'first_name'],
                'indexes': [
                    models.Index(fields=['school', 'is_active'], name='student_school_active_idx'),
                ],
            },
        ),
        migrations.AddConstraint(
            model_name='student',
            constraint=models.UniqueConstraint(fields=('school', 'admission_number'), name='unique_admission_number_per_school'),
        ),
        migrations.CreateModel(
            name='Alumni',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(db_index=True, help_text="When this record was created (in school's operational timezone)", verbose_name='Created At')),
                ('updated_at', models.DateTimeField(db_index=True, help_text="When this record was last updated (in school's operational timezone)", verbose_name='Updated At')),
                ('created_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who created this record', max_length=50, null=True, verbose_name='Created By ID')),
                ('updated_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who last updated this record', max_length=50, null=True, verbose_name='Updated By ID')),
                ('created_from_ip', models.GenericIPAddressField(blank=True, null=True, verbose_name='Created From IP')),
                ('change_reason', models.CharField(blank=True, help_text='Explanation for why this change was made', max_length=255, null=True, verbose_name='Change Reason')),
                ('graduation_year', models.PositiveIntegerField(db_index=True, verbose_name='Graduation Year')),
                ('graduation_date', models.DateField(verbose_name='Graduation Date')),
                ('final_class_name', models.CharField(blank=True, max_length=60, verbose_name='Final Class')),
                ('final_grade_name', models.CharField(blank=True, max_length=50, verbose_name='Final Grade')),
                ('final_average_grade', models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True, verbose_name='Final Average Grade (%)')),
                ('outstanding_balance', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True, verbose_name='Outstanding Balance at Graduation')),
                ('recorded_by', models.CharField(blank=True, max_length=100, verbose_name='Recorded By')),
                ('school', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='alumni', to='core.school', verbose_name='School')),
                ('student', models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name='alumni_record', to='students.student', verbose_name='Student')),
            ],
            options={
                'verbose_name': 'Alumni',
                'verbose_name_plural': 'Alumni',
                'ordering': ['-graduation_year', 'student__last_name'],
            },
        ),
    ]
