# apps/academics/migrations/0001_initial.py

from django.db import migrations, models
import django.db.models.deletion
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('core', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='AcademicYear',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(db_index=True, help_text="When this record was created (in school's operational timezone)", verbose_name='Created At')),
                ('updated_at', models.DateTimeField(db_index=True, help_text="When this record was last updated (in school's operational timezone)", verbose_name='Updated At')),
                ('created_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who created this record', max_length=50, null=True, verbose_name='Created By ID')),
                ('updated_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who last updated this record', max_length=50, null=True, verbose_name='Updated By ID')),
                ('created_from_ip', models.GenericIPAddressField(blank=True, null=True, verbose_name='Created From IP')),
                ('change_reason', models.CharField(blank=True, help_text='Explanation for why this change was made', max_length=255, null=True, verbose_name='Change Reason')),
                ('year', models.PositiveIntegerField(help_text='Calendar year the academic year starts in', verbose_name='Year')),
                ('name', models.CharField(blank=True, max_length=50, verbose_name='Name')),
                ('start_date', models.DateField(blank=True, null=True, verbose_name='Start Date')),
                ('end_date', models.DateField(blank=True, null=True, verbose_name='End Date')),
                ('is_current', models.BooleanField(default=False, verbose_name='Is Current')),
                ('school', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='academic_years', to='core.school', verbose_name='School')),
            ],
            options={
                'verbose_name': 'Academic Year',
                'verbose_name_plural': 'Academic Years',
                'ordering': ['school', 'year'],
            },
        ),
        migrations.CreateModel(
            name='Grade',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(db_index=True, help_text="When this record was created (in school's operational timezone)", verbose_name='Created At')),
                ('updated_at', models.DateTimeField(db_index=True, help_text="When this record was last updated (in school's operational timezone)", verbose_name='Updated At')),
                ('created_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who created this record', max_length=50, null=True, verbose_name='Created By ID')),
                ('updated_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who last updated this record', max_length=50, null=True, verbose_name='Updated By ID')),
                ('created_from_ip', models.GenericIPAddressField(blank=True, null=True, verbose_name='Created From IP')),
                ('change_reason', models.CharField(blank=True, help_text='Explanation for why this change was made', max_length=255, null=True, verbose_name='Change Reason')),
                ('name', models.CharField(max_length=50, verbose_name='Grade Name')),
                ('code', models.CharField(max_length=20, verbose_name='Grade Code')),
                ('level', models.PositiveIntegerField(help_text='Ordering of grades; higher is more senior', verbose_name='Level')),
                ('is_graduation_level', models.BooleanField(default=False, help_text='Completing this grade graduates the student to Alumni', verbose_name='Is Graduation Level')),
                ('is_alumni', models.BooleanField(default=False, editable=False, verbose_name='Is Alumni Grade')),
                ('is_active', models.BooleanField(default=True, verbose_name='Is Active')),
                ('school', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='grades', to='core.school', verbose_name='School')),
            ],
            options={
                'verbose_name': 'Grade',
                'verbose_name_plural': 'Grades',
                'ordering': ['school', 'level'],
            },
        ),
        migrations.CreateModel(
            name='Term',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(db_index=True, help_text="When this record was created (in school's operational timezone)", verbose_name='Created At')),
                ('updated_at', models.DateTimeField(db_index=True, help_text="When this record was last updated (in school's operational timezone)", verbose_name='Updated At')),
                ('created_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who created this record', max_length=50, null=True, verbose_name='Created By ID')),
                ('updated_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who last updated this record', max_length=50, null=True, verbose_name='Updated By ID')),
                ('created_from_ip', models.GenericIPAddressField(blank=True, null=True, verbose_name='Created From IP')),
                ('change_reason', models.CharField(blank=True, help_text='Explanation for why this change was made', max_length=255, null=True, verbose_name='Change Reason')),
                ('name', models.CharField(help_text='E.g. Term 1', max_length=50, verbose_name='Term Name')),
                ('order', models.PositiveSmallIntegerField(help_text='Position of the term within the year', verbose_name='Order')),
                ('start_date', models.DateField(blank=True, null=True, verbose_name='Start Date')),
                ('end_date', models.DateField(blank=True, null=True, verbose_name='End Date')),
                ('is_current', models.BooleanField(default=False, verbose_name='Is Current')),
                ('academic_year', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='terms', to='academics.academicyear', verbose_name='Academic Year')),
            ],
            options={
                'verbose_name': 'Term',
                'verbose_name_plural': 'Terms',
                'ordering': ['academic_year__year', 'order'],
            },
        ),
        migrations.CreateModel(
            name='Class',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(db_index=True, help_text="When this record was created (in school's operational timezone)", verbose_name='Created At')),
                ('updated_at', models.DateTimeField(db_index=True, help_text="When this record was last updated (in school's operational timezone)", verbose_name='Updated At')),
                ('created_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who created this record', max_length=50, null=True, verbose_name='Created By ID')),
                ('updated_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who last updated this record', max_length=50, null=True, verbose_name='Updated By ID')),
                ('created_from_ip', models.GenericIPAddressField(blank=True, null=True, verbose_name='Created From IP')),
                ('change_reason', models.CharField(blank=True, help_text='Explanation for why this change was made', max_length=255, null=True, verbose_name='Change Reason')),
                ('section', models.CharField(blank=True, default='', help_text='E.g., A, B, C (leave blank if no sections)', max_length=10, verbose_name='Section')),
                ('name', models.CharField(blank=True, max_length=60, verbose_name='Class Name')),
                ('max_students', models.PositiveIntegerField(default=40, verbose_name='Maximum Students')),
                ('is_active', models.BooleanField(default=True, verbose_name='Is Active')),
                ('academic_year', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='classes', to='academics.academicyear', verbose_name='Academic Year')),
                ('grade', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='classes', to='academics.grade', verbose_name='Grade')),
                ('school', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='classes', to='core.school', verbose_name='School')),
            ],
            options={
                'verbose_name': 'Class',
                'verbose_name_plural': 'Classes',
                'ordering': ['school', 'grade__level', 'section'],
            },
        ),
        migrations.CreateModel(
            name='ClassProgression',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(db_index=True, help_text="When this record was created (in school's operational timezone)", verbose_name='Created At')),
                ('updated_at', models.DateTimeField(db_index=True, help_text="When this record was last updated (in school's operational timezone)", verbose_name='Updated At')),
                ('created_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who created this record', max_length=50, null=True, verbose_name='Created By ID')),
                ('updated_by_id', models.CharField(blank=True, db_index=True, help_text='ID of user who last updated this record', max_length=50, null=True, verbose_name='Updated By ID')),
                ('created_from_ip', models.GenericIPAddressField(blank=True, null=True, verbose_name='Created From IP')),
                ('change_reason', models.CharField(blank=True, help_text='Explanation for why this change was made', max_length=255, null=True, verbose_name='Change Reason')),
                ('to_alumni', models.BooleanField(default=False, verbose_name='Promote to Alumni')),
                ('order', models.PositiveIntegerField(default=0, verbose_name='Order')),
                ('is_active', models.BooleanField(default=True, verbose_name='Is Active')),
                ('from_academic_year', models.ForeignKey(blank=True, help_text='Leave blank to apply to every year transition', null=True, on_delete=django.db.models.deletion.CASCADE, related_name='+', to='academics.academicyear', verbose_name='From Academic Year')),
                ('from_class', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='outgoing_progressions', to='academics.class', verbose_name='From Class')),
                ('school', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='class_progressions', to='core.school', verbose_name='School')),
                ('to_class', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='incoming_progressions', to='academics.class', verbose_name='To Class')),
            ],
            options={
                'verbose_name': 'Class Progression',
                'verbose_name_plural': 'Class Progressions',
                'ordering': ['school', 'order'],
            },
        ),
        migrations.AddConstraint(
            model_name='academicyear',
            constraint=models.UniqueConstraint(fields=('school', 'year'), name='unique_academic_year_per_school'),
        ),
        migrations.AddConstraint(
            model_name='grade',
            constraint=models.UniqueConstraint(fields=('school', 'code'), name='unique_grade_code_per_school'),
        ),
        migrations.AddConstraint(
            model_name='term',
            constraint=models.UniqueConstraint(fields=('academic_year', 'order'), name='unique_term_order_per_year'),
        ),
    ]
